import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import analytics
import applications
import catalog
import database
import payments
import reviews
import users
from access import Caller, Capability, create_token, ensure_capability, ensure_owner_or_admin, require
from database import current_db, get_db, serialize_doc
from errors import ScholarStreamError, StoreError
from observability import setup_logging
from schemas import (
    Application,
    FeedbackUpdate,
    Payment,
    PaymentIntentRequest,
    Review,
    ReviewUpdate,
    RoleUpdate,
    Scholarship,
    StatusUpdate,
    TokenRequest,
    TokenResponse,
    UserCreate,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="ScholarStream API")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", "60"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

public = require(Capability.NONE)
authenticated = require(Capability.AUTHENTICATED)
moderator_or_admin = require(Capability.MODERATOR_OR_ADMIN)
admin_only = require(Capability.ADMIN_ONLY)


# ----------------------
# Error handlers
# ----------------------
@app.exception_handler(ScholarStreamError)
async def scholarstream_error_handler(request: Request, exc: ScholarStreamError):
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(exc.message, extra={"error_code": exc.code, "path": request.url.path, "method": request.method})
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation error", extra={"path": request.url.path, "error_code": "VALIDATION_ERROR"})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "details": [
                {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
                for e in exc.errors()
            ],
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", exc_info=True, extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "code": "INTERNAL_ERROR", "message": "Server error"},
    )


# ----------------------
# Startup: logging + seed admin
# ----------------------
@app.on_event("startup")
def on_startup():
    setup_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FORMAT", "json"))
    # If DB is not configured, skip seeding so the app can start
    if database.db is None:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; running without a database")
        return
    admin_email = os.getenv("ADMIN_EMAIL", "admin@scholarstream.com")
    admin_pass = os.getenv("ADMIN_PASSWORD", "admin123")
    try:
        if users.seed_admin(database.db, admin_email, admin_pass):
            logger.info("seeded admin account", extra={"email": admin_email})
    except (PyMongoError, StoreError):
        # don't crash startup on seeding error
        logger.exception("admin seeding failed")


# ----------------------
# Basic routes
# ----------------------
@app.get("/")
def root():
    return {"message": "ScholarStream server"}


@app.get("/test")
def test_database(db: Optional[Database] = Depends(current_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# ----------------------
# Auth endpoints
# ----------------------
@app.post("/jwt", response_model=TokenResponse)
def issue_token(payload: TokenRequest, response: Response, db: Database = Depends(get_db)):
    user = users.verify_login(db, payload.email, payload.password)
    token = create_token(user["email"])
    response.set_cookie(
        "token",
        token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="none" if COOKIE_SECURE else "lax",
        max_age=JWT_EXP_MIN * 60,
    )
    return TokenResponse(access_token=token)


@app.post("/logout")
def logout(response: Response):
    response.delete_cookie("token", httponly=True, secure=COOKIE_SECURE, samesite="none" if COOKIE_SECURE else "lax")
    return {"success": True}


# ----------------------
# User endpoints
# ----------------------
@app.get("/users")
def list_users(db: Database = Depends(get_db), caller: Caller = Depends(admin_only)):
    return serialize_doc(users.list_users(db))


@app.get("/users/{email}")
def get_user(email: str, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    return serialize_doc(users.get_by_email(db, email))


@app.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(body: UserCreate, db: Database = Depends(get_db), caller: Caller = Depends(public)):
    user_id = users.create_user(db, body.model_dump(exclude_none=True))
    return {"success": True, "insertedId": user_id}


@app.put("/users/{user_id}/role")
def update_user_role(
    user_id: str, body: RoleUpdate, db: Database = Depends(get_db), caller: Caller = Depends(admin_only)
):
    users.set_role(db, user_id, body.role)
    return {"success": True, "message": "Role updated successfully"}


# ----------------------
# Scholarship endpoints
# ----------------------
@app.get("/scholarships")
def list_scholarships(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sortBy: Optional[str] = None,
    order: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Database = Depends(get_db),
    caller: Caller = Depends(public),
):
    result = catalog.list_scholarships(
        db,
        search=search,
        category=category,
        sort_by=sortBy,
        order=order,
        page=page if page is not None else catalog.DEFAULT_PAGE,
        limit=limit if limit is not None else catalog.DEFAULT_LIMIT,
    )
    result["data"] = serialize_doc(result["data"])
    return result


@app.get("/scholarships/featured")
def featured_scholarships(
    limit: Optional[str] = None, db: Database = Depends(get_db), caller: Caller = Depends(public)
):
    return serialize_doc(catalog.list_featured(db, limit if limit is not None else catalog.FEATURED_LIMIT))


@app.get("/scholarships/recommended")
def recommended_scholarships(
    category: Optional[str] = None,
    exclude: Optional[str] = None,
    db: Database = Depends(get_db),
    caller: Caller = Depends(public),
):
    return serialize_doc(catalog.list_recommended(db, category, exclude))


@app.get("/scholarships/{owner_email}")
def owner_scholarships(owner_email: str, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    ensure_owner_or_admin(db, caller, owner_email)
    return serialize_doc(catalog.list_by_owner(db, owner_email))


@app.post("/scholarships", status_code=status.HTTP_201_CREATED)
def create_scholarship(body: Scholarship, db: Database = Depends(get_db), caller: Caller = Depends(moderator_or_admin)):
    scholarship_id = catalog.create(db, body.model_dump(exclude_none=True))
    return {"acknowledged": True, "insertedId": scholarship_id}


@app.get("/scholarship/data/{scholarship_id}")
def get_scholarship(scholarship_id: str, db: Database = Depends(get_db), caller: Caller = Depends(public)):
    return serialize_doc(catalog.get_by_id(db, scholarship_id))


@app.put("/scholarship/update/{scholarship_id}")
def update_scholarship(
    scholarship_id: str,
    body: Scholarship,
    db: Database = Depends(get_db),
    caller: Caller = Depends(moderator_or_admin),
):
    catalog.update(db, scholarship_id, body.model_dump(exclude_unset=True))
    return {"success": True, "message": "Updated successfully"}


@app.delete("/scholarships/delete/{scholarship_id}")
def delete_scholarship(
    scholarship_id: str, db: Database = Depends(get_db), caller: Caller = Depends(moderator_or_admin)
):
    deleted = catalog.delete(db, scholarship_id)
    return {"success": True, "deletedCount": deleted}


# ----------------------
# Application endpoints
# ----------------------
@app.post("/applications", status_code=status.HTTP_201_CREATED)
def create_application(body: Application, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    application_id = applications.create(db, body.model_dump(exclude_none=True))
    return {"success": True, "insertedId": application_id}


@app.get("/applications/user")
def applicant_applications(
    email: Optional[str] = None, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)
):
    if email:
        ensure_owner_or_admin(db, caller, email)
    return serialize_doc(applications.list_by_applicant(db, email))


@app.get("/applications/details/{application_id}")
def get_application(application_id: str, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    return serialize_doc(applications.get_by_id(db, application_id))


@app.get("/applications/{issuer_email}")
def issuer_applications(
    issuer_email: str, db: Database = Depends(get_db), caller: Caller = Depends(moderator_or_admin)
):
    return serialize_doc(applications.list_by_issuer(db, issuer_email))


@app.put("/applications/{application_id}")
def update_application(
    application_id: str,
    body: Application,
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticated),
):
    patch = body.model_dump(exclude_unset=True)
    if any(field in patch for field in applications.REVIEW_FIELDS):
        ensure_capability(db, caller, Capability.MODERATOR_OR_ADMIN)
    elif applications.get_by_id(db, application_id).get("applicant") != caller.email:
        ensure_capability(db, caller, Capability.MODERATOR_OR_ADMIN)
    applications.update_full(db, application_id, patch)
    return {"success": True, "message": "Application updated"}


@app.put("/applications/{application_id}/status")
def update_application_status(
    application_id: str,
    body: StatusUpdate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(moderator_or_admin),
):
    applications.update_status(db, application_id, body.status)
    return {"success": True, "message": "Status updated"}


@app.put("/applications/{application_id}/feedback")
def update_application_feedback(
    application_id: str,
    body: FeedbackUpdate,
    db: Database = Depends(get_db),
    caller: Caller = Depends(moderator_or_admin),
):
    applications.update_feedback(db, application_id, body.feedback)
    return {"success": True, "message": "Feedback saved"}


@app.delete("/applications/delete/{application_id}")
def force_delete_application(
    application_id: str, db: Database = Depends(get_db), caller: Caller = Depends(admin_only)
):
    deleted = applications.force_delete(db, application_id)
    return {"success": True, "deleted": deleted > 0, "deletedCount": deleted}


@app.delete("/applications/{application_id}")
def delete_pending_application(
    application_id: str, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)
):
    doc = applications.get_by_id(db, application_id)
    ensure_owner_or_admin(db, caller, doc.get("applicant"))
    deleted = applications.delete_if_pending(db, application_id)
    return {"success": True, "deleted": deleted > 0, "deletedCount": deleted}


# ----------------------
# Payment endpoints
# ----------------------
@app.post("/create-payment-intent")
def create_payment_intent(
    body: PaymentIntentRequest,
    gateway: payments.PaymentGateway = Depends(payments.get_gateway),
    caller: Caller = Depends(authenticated),
):
    metadata = {"scholarshipId": body.scholarshipId, "email": body.email or caller.email}
    return {"clientSecret": gateway.create_payment_intent(body.amount, metadata)}


@app.post("/payments", status_code=status.HTTP_201_CREATED)
def record_payment(body: Payment, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    payment_id = payments.record_payment(
        db,
        scholarshipId=body.scholarshipId,
        amount=body.amount,
        transactionId=body.transactionId,
        email=body.email,
    )
    return {"success": True, "insertedId": payment_id}


@app.get("/payments")
def payment_history(
    email: Optional[str] = None, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)
):
    if email:
        ensure_owner_or_admin(db, caller, email)
    return serialize_doc(payments.list_by_email(db, email))


# ----------------------
# Review endpoints
# ----------------------
@app.get("/reviews")
def list_reviews(
    scholarshipId: Optional[str] = None,
    email: Optional[str] = None,
    moderatorEmail: Optional[str] = None,
    db: Database = Depends(get_db),
    caller: Caller = Depends(public),
):
    return serialize_doc(reviews.list_reviews(db, scholarshipId, email, moderatorEmail))


@app.post("/reviews", status_code=status.HTTP_201_CREATED)
def create_review(body: Review, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    review_id = reviews.create(db, body.model_dump(exclude_none=True))
    return {"success": True, "insertedId": review_id}


@app.put("/reviews/{review_id}")
def update_review(
    review_id: str, body: ReviewUpdate, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)
):
    reviews.update(db, review_id, reviewComment=body.reviewComment, ratingPoint=body.ratingPoint)
    return {"success": True, "message": "Review updated"}


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Database = Depends(get_db), caller: Caller = Depends(authenticated)):
    deleted = reviews.delete(db, review_id)
    return {"success": True, "deletedCount": deleted}


# ----------------------
# Analytics endpoints
# ----------------------
@app.get("/home/stats")
def home_stats(db: Optional[Database] = Depends(current_db), caller: Caller = Depends(public)):
    return analytics.home_stats(db)


@app.get("/analytics/stats")
def dashboard_stats(db: Optional[Database] = Depends(current_db), caller: Caller = Depends(admin_only)):
    return analytics.dashboard_stats(db)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
