from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busline.api.bearer import bearer_account
from busline.src.constants import MAX_ACCOUNT_TOKENS, MAX_TOKEN_VALIDITY
from busline.src.db import Account, AccountToken
from busline.src import argon2, exceptions, validators, getters
from busline.src.enums import AccountStatus, PlatformType
from busline.src.loggers import logEvent
from busline.src.functions import enumStr, fuseExceptionResponses
from busline.src.urls import URL_ACCOUNT_TOKEN

route_member = APIRouter()


## Output Schema
class MaskedAccountTokenSchema(BaseModel):
    id: int
    account_id: int
    expires_in: int
    platform_type: int
    client_details: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class AccountTokenSchema(MaskedAccountTokenSchema):
    access_token: str
    token_type: Optional[str] = "bearer"
    role: int


## Input Forms
class CreateForm(BaseModel):
    username: str = Field(Form(max_length=32))
    password: str = Field(Form(max_length=32))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


class DeleteForm(BaseModel):
    id: int | None = Field(Form(default=None))


## API endpoints [Member]
@route_member.post(
    URL_ACCOUNT_TOKEN,
    tags=["Token"],
    response_model=AccountTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [exceptions.InactiveAccount(), exceptions.InvalidCredentials()]
    ),
    description="""
    Issues a new access token for an account after validating credentials.
    If the credentials are valid and the account is active, a new token is generated and returned.
    Limits active tokens using MAX_ACCOUNT_TOKENS (the oldest token is rotated out).
    Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    The role of the account is returned along with the token.
    Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        account = (
            session.query(Account).filter(Account.username == fParam.username).first()
        )
        if account is None:
            raise exceptions.InvalidCredentials()

        if not argon2.checkPassword(fParam.password, account.password):
            raise exceptions.InvalidCredentials()
        if account.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        if argon2.needsRehash(account.password):
            account.password = argon2.makePassword(fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(AccountToken)
            .filter(AccountToken.account_id == account.id)
            .order_by(AccountToken.created_on.desc(), AccountToken.id.desc())
            .all()
        )
        for token in tokens[MAX_ACCOUNT_TOKENS - 1 :]:
            session.delete(token)
        session.flush()

        # Create a new token
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = AccountToken(
            account_id=account.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        tokenData = jsonable_encoder(token)
        tokenLogData = tokenData.copy()
        tokenLogData.pop("access_token")
        logEvent(token, request_info, tokenLogData)
        tokenData["role"] = account.role
        return tokenData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.delete(
    URL_ACCOUNT_TOKEN,
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Revokes an access token of the account (logout).
    If no ID is provided, it deletes the token used in the request (self-revocation).
    If an ID is provided, the token must belong to the same account.
    If the token ID is invalid or already deleted, the operation is silently ignored.
    Logs the token revocation event for audit tracking.
    """,
)
async def delete_token(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)

        if fParam.id is None:
            tokenToDelete = token
        else:
            tokenToDelete = (
                session.query(AccountToken).filter(AccountToken.id == fParam.id).first()
            )
            if tokenToDelete is None:
                return Response(status_code=status.HTTP_204_NO_CONTENT)
            if tokenToDelete.account_id != token.account_id:
                raise exceptions.NoPermission()

        session.delete(tokenToDelete)
        session.commit()
        logEvent(
            token,
            request_info,
            jsonable_encoder(tokenToDelete, exclude={"access_token"}),
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
