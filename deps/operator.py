# deps/operator.py
from fastapi import Header, HTTPException, status


def require_operator(x_operator_id: str | None = Header(default=None)) -> str:
    """
    Operator identity is established upstream (gateway / SSO); the engine
    only records who acted.
    """
    operator = (x_operator_id or "").strip()
    if not operator:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="OPERATOR_REQUIRED",
        )
    return operator
