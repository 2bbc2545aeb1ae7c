# lms/auth/auth_utils.py
import logging

from jose import jwt, JWTError
from fastapi import Header, HTTPException

from lms import config

logger = logging.getLogger(__name__)


def decode_token(token: str) -> dict:
    # an empty HS256 key would verify tokens anyone can sign
    if not config.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is not set; rejecting token")
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")

    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def verify_lum_token(authorization: str = Header(None)) -> dict:
    """
    Decode the bearer token from the Authorization header.
    Payload carries `sub` (user id) and `cid` (bound client id).
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1]
    return decode_token(token)
