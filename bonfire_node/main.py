from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import logging

from bonfire_node.config import ensure_directories, MAX_CIPHERTEXT_SIZE, CORS_ORIGINS
from bonfire_node.crypto import MESSAGE_MIN_SIZE
from bonfire_node.database import get_db
from bonfire_node.directory import DuplicateUser, get_user, list_users, register_user
from bonfire_node.encoding import from_b64
from bonfire_node.errors import MalformedInput
from bonfire_node.messages import insert_message, list_conversation

logger = logging.getLogger(__name__)


class UserCreate(BaseModel):
    email: str
    public_key: str
    username: str | None = None

class UserOut(BaseModel):
    id: str
    email: str
    username: str | None = None
    public_key: str

class MessageCreate(BaseModel):
    sender_id: str
    receiver_id: str
    ciphertext: str

class MessageOut(BaseModel):
    id: int
    sender_id: str
    receiver_id: str
    ciphertext: str
    created_at: str

app = FastAPI(title="Bonfire Relay", version="1.0.0")

# --------------------------------------------
# CORS
# --------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    ensure_directories()
    get_db()
    logger.info("Relay ready")


# ---------------------------------------------------------
# HEALTH CHECK
# ---------------------------------------------------------
@app.get("/health")
def health_check():
    checks = {"database": False}

    try:
        db = get_db()
        db.execute("SELECT 1").fetchone()
        checks["database"] = True
    except Exception as e:
        logger.error(f"Health check DB failed: {e}")

    all_ok = all(checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "healthy" if all_ok else "degraded", "checks": checks}
    )


# ---------------------------------------------------------
# KEY DIRECTORY
# ---------------------------------------------------------
@app.post("/users", response_model=UserOut, status_code=201)
def api_register_user(req: UserCreate):
    try:
        user = register_user(req.email, req.public_key, username=req.username)
    except MalformedInput as e:
        raise HTTPException(status_code=422, detail=f"invalid public_key: {e}")
    except DuplicateUser as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"User registered: id={user['id']}")
    return user


@app.get("/users", response_model=list[UserOut])
def api_list_users(
    exclude: str | None = Query(None, description="user id to leave out (the caller)"),
):
    return list_users(exclude_id=exclude)


@app.get("/users/{user_id}", response_model=UserOut)
def api_get_user(user_id: str):
    user = get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    return user


# ---------------------------------------------------------
# MESSAGES (ciphertext only)
# ---------------------------------------------------------
@app.post("/messages", response_model=MessageOut, status_code=201)
def api_insert_message(req: MessageCreate):
    if len(req.ciphertext) > MAX_CIPHERTEXT_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"ciphertext too large (max {MAX_CIPHERTEXT_SIZE} characters)"
        )

    try:
        blob = from_b64(req.ciphertext)
    except MalformedInput:
        raise HTTPException(status_code=422, detail="ciphertext must be base64")
    if len(blob) < MESSAGE_MIN_SIZE:
        raise HTTPException(status_code=422, detail="ciphertext shorter than nonce and tag")

    for uid in (req.sender_id, req.receiver_id):
        if get_user(uid) is None:
            raise HTTPException(status_code=404, detail=f"unknown user: {uid}")

    row = insert_message(req.sender_id, req.receiver_id, req.ciphertext)
    logger.debug(f"Message stored: id={row['id']} ({len(blob)} bytes)")
    return row


@app.get("/messages", response_model=list[MessageOut])
def api_list_messages(
    a: str = Query(..., description="one participant"),
    b: str = Query(..., description="the other participant"),
    after: int = Query(0, ge=0, description="only rows with a greater id"),
):
    return list_conversation(a, b, after_id=after)
