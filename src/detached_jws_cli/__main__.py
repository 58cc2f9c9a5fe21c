from __future__ import annotations
import base64
import json
import logging
import pathlib
from typing import Any, Dict, List, Optional, Tuple

import typer
from pydantic import ValidationError
from rich import print
from rich.console import Console
from cryptography.hazmat.primitives import serialization

from detached_jws import JwsError, deserialize_selector, serialize
from detached_jws.backends import (
    SUPPORTED_ALGORITHMS,
    resolver_for_keys,
    signer_for,
)
from detached_jws.compact import decode_segment, split_compact
from detached_jws.header import parse_header
from detached_jws.logutil import setup_logging
from detached_jws.models import Ed25519KeyFile, HmacKeyFile
from detached_jws.settings import settings

app = typer.Typer(add_completion=False, no_args_is_help=True)
err = Console(stderr=True)


@app.callback()
def main(
    log_level: str = typer.Option(
        None, help="Logging level (default: DETACHED_JWS_LOG_LEVEL or INFO)"
    ),
):
    level = (log_level or settings.log_level).upper()
    setup_logging(getattr(logging, level, logging.INFO))


def _check_alg(alg: str) -> str:
    if alg not in SUPPORTED_ALGORITHMS:
        raise typer.BadParameter(
            f"unsupported algorithm {alg!r}; choose one of {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    return alg


def _load_key(path: str, alg: str, private: bool) -> Tuple[Any, Optional[str]]:
    """Load a key file for ``alg``; returns (key, key_id)."""
    try:
        data = pathlib.Path(path).read_bytes()
    except OSError as e:
        raise typer.BadParameter(f"cannot read key file {path}: {e}")
    try:
        if alg.startswith("HS"):
            k = HmacKeyFile.model_validate_json(data)
            return k.secret, k.key_id
        if alg == "EdDSA":
            from nacl.signing import SigningKey, VerifyKey

            k = Ed25519KeyFile.model_validate_json(data)
            if k.sk_b64:
                sk = SigningKey(base64.b64decode(k.sk_b64))
                return (sk if private else sk.verify_key), k.key_id
            if private or not k.pk_b64:
                raise typer.BadParameter("Ed25519 key file lacks the required key")
            return VerifyKey(base64.b64decode(k.pk_b64)), k.key_id
        if private:
            return serialization.load_pem_private_key(data, password=None), None
        try:
            return serialization.load_pem_public_key(data), None
        except ValueError:
            return serialization.load_pem_private_key(data, password=None), None
    except (ValidationError, ValueError, TypeError) as e:
        raise typer.BadParameter(f"invalid key file {path}: {e}")


def _parse_fields(fields: List[str]) -> Dict[str, Any]:
    header: Dict[str, Any] = {}
    for item in fields:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"header field must be key=value, got {item!r}")
        # JSON literals (numbers, booleans, objects) pass through; anything else is a string
        try:
            header[name] = json.loads(value)
        except ValueError:
            header[name] = value
    return header


def _read_token(token: str) -> str:
    if token.startswith("@"):
        return pathlib.Path(token[1:]).read_text(encoding="ascii").strip()
    return token.strip()


@app.command()
def sign(
    payload: typer.FileBinaryRead = typer.Argument(..., help="Payload file ('-' for stdin)"),
    key: str = typer.Option(..., help="Signing key file (JSON for HS*/EdDSA, PEM otherwise)"),
    alg: str = typer.Option("EdDSA", help="JWS algorithm"),
    header: List[str] = typer.Option(
        [], "--header", "-H", help="Extra protected header field key=value (repeatable)"
    ),
    kid: Optional[str] = typer.Option(None, help="Key id (defaults to key_id from the key file)"),
):
    """Sign a payload and print the compact detached JWS."""
    _check_alg(alg)
    sk, key_id = _load_key(key, alg, private=True)
    fields = _parse_fields(header)
    if kid or key_id:
        fields.setdefault("kid", kid or key_id)
    try:
        signer = signer_for(alg, sk)
    except TypeError as e:
        raise typer.BadParameter(str(e))
    try:
        token = serialize(alg, fields, payload, signer)
    except JwsError as e:
        err.print(f"[red]signing failed: {e}[/red]")
        raise typer.Exit(code=1)
    typer.echo(token)


@app.command()
def verify(
    token: str = typer.Argument(..., help="Compact detached JWS, or @file"),
    payload: typer.FileBinaryRead = typer.Argument(..., help="Payload file ('-' for stdin)"),
    key: str = typer.Option(..., help="Verification key file (JSON for HS*/EdDSA, PEM otherwise)"),
    alg: str = typer.Option("EdDSA", help="Expected JWS algorithm"),
):
    """Verify a detached JWS against its payload and print the header."""
    _check_alg(alg)
    vk, key_id = _load_key(key, alg, private=False)
    keys: Dict[Optional[str], Any] = {None: vk}
    if key_id:
        keys[key_id] = vk
    try:
        verified = deserialize_selector(
            _read_token(token), payload, resolver_for_keys(keys, algorithms=(alg,))
        )
    except JwsError as e:
        err.print(f"[red]verification failed ({type(e).__name__}): {e}[/red]")
        raise typer.Exit(code=1)
    err.print("[green]signature valid[/green]")
    typer.echo(json.dumps(verified, ensure_ascii=False))


@app.command()
def inspect(token: str = typer.Argument(..., help="Compact detached JWS, or @file")):
    """Print the protected header WITHOUT verifying the signature."""
    try:
        header_segment, payload_segment, _ = split_compact(_read_token(token))
        header = parse_header(decode_segment(header_segment))
    except JwsError as e:
        err.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise typer.Exit(code=1)
    print(header)
    if payload_segment:
        err.print("[yellow]payload is attached; not a detached JWS[/yellow]")


if __name__ == "__main__":
    app()
