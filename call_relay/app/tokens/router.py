import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from .schemas import TokenResponse
from .service import TokenIssuer, parse_uid
from ..dependencies import get_token_issuer
from ..errors import RelayError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tokens"])


@router.get('/token', response_model=TokenResponse)
async def get_token(
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    channelName: Optional[str] = Query(None, description="Channel to join"),
    uid: Optional[str] = Query(None, description="Numeric user id, 0 lets Agora assign one"),
):
    """
    Issue a publisher token for an Agora channel, valid for one hour
    """
    try:
        token = token_issuer.issue_token(channelName, parse_uid(uid))
        return TokenResponse(token=token)
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"Error issuing token for channel {channelName}: {str(e)}")
        raise RelayError("An error occurred while issuing the token", details=str(e))
