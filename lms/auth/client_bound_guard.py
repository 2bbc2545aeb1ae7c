# lms/auth/client_bound_guard.py

import time
import hashlib
from typing import Optional

from fastapi import Header, HTTPException, Request, Depends
from nacl.signing import VerifyKey
from nacl.exceptions import BadSignatureError

from lms import config
from lms.auth.auth_utils import verify_lum_token


def derive_client_id(public_key_bytes: bytes) -> str:
    return hashlib.sha256(public_key_bytes).hexdigest()


def verify_client_bound_request(
    request: Request,
    token_payload: dict = Depends(verify_lum_token),
    x_client_public_key: Optional[str] = Header(None),
    x_client_signature: Optional[str] = Header(None),
    x_client_timestamp: Optional[str] = Header(None),
) -> dict:
    """
    Checks that the request was signed by the client the token was issued to.

    Message signed by the client: "<timestamp>:<request_path>"
    Skipped entirely when CLIENT_SIGNATURE_REQUIRED is off.
    """
    if not config.CLIENT_SIGNATURE_REQUIRED:
        return token_payload

    if not x_client_public_key or not x_client_signature or not x_client_timestamp:
        raise HTTPException(status_code=401, detail="Missing client signature headers")

    # Replay window
    try:
        ts = int(x_client_timestamp)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid timestamp")

    if abs(int(time.time()) - ts) > config.CLIENT_TIMESTAMP_SKEW_SECONDS:
        raise HTTPException(status_code=401, detail="Stale request")

    try:
        public_key_bytes = bytes.fromhex(x_client_public_key)
        verify_key = VerifyKey(public_key_bytes)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid client public key")

    # client id is derived server-side, never taken from the client
    token_client_id = token_payload.get("cid")
    if not token_client_id:
        raise HTTPException(status_code=401, detail="Token not client-bound")

    if token_client_id != derive_client_id(public_key_bytes):
        raise HTTPException(status_code=401, detail="Client mismatch")

    message = f"{x_client_timestamp}:{request.url.path}".encode()
    try:
        verify_key.verify(message, bytes.fromhex(x_client_signature))
    except (BadSignatureError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid client signature")

    return token_payload
