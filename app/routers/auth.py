from fastapi import APIRouter, Depends

from app.dependencies import get_token_service
from app.schemas import TokenRequest, TokenResponse
from app.security import TokenService

router = APIRouter(tags=["auth"])

@router.post("/jwt", response_model=TokenResponse)
async def issue_token(data: TokenRequest, tokens: TokenService = Depends(get_token_service)):
    # Any caller can mint a token for any email; see app.security.
    return TokenResponse(token=tokens.issue(data.email))
