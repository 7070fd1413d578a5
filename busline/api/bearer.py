from fastapi.security import HTTPBearer

# HTTP Bearer authentication scheme for member accounts
bearer_account = HTTPBearer(scheme_name="Account HTTPBearer")
