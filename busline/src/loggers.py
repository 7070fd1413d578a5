from logging import getLogger
from requests.exceptions import RequestException

from busline.src.db import AccountToken
from busline.src import openobserve
from busline.src.schemas import RequestInfo

logger = getLogger("uvicorn.error")


def logEvent(token: AccountToken, requestInfo: RequestInfo, data: dict) -> None:
    """
    Log an event to OpenObserve with request and user context.

    Args:
        token (AccountToken): Authenticated account token.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path` and `_account_id`.
        - The event is sent after the change is committed, so a failed
          delivery is reported on the server log instead of failing the request.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
        "_account_id": token.account_id,
    }
    logDetails.update(data)

    try:
        openobserve.logEvent(logDetails)
    except RequestException as e:
        logger.warning("OpenObserve event delivery failed: %s", e)
