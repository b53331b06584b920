from fastapi import Request
from sqlalchemy.orm import Session

from modules.submissions.schemas.submission_schemas import RequestMeta


def get_services(request: Request):
    return request.app.state.services


def get_db(request: Request):
    db: Session = request.app.state.services.session_factory()
    try:
        yield db
    finally:
        db.close()


def request_meta_from(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    return RequestMeta(ip_address=ip, user_agent=request.headers.get("user-agent"))
