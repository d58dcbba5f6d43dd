from fastapi import FastAPI, HTTPException, Request, Depends, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List
import logging
import traceback
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import ai, models
from .auth import create_token, current_user, hash_password, require_role, verify_password
from .config import settings
from .db import create_tables, get_db
from .schemas import (
    AI_SCHEMAS,
    ANNOUNCEMENTS_CONVERSATION_ID,
    ENTITY_SCHEMAS,
    AuthResponse,
    ChatReply,
    ChatRequest,
    Conversation,
    DeleteRequest,
    FindOrCreateRequest,
    GenerateJsonRequest,
    GenerateTextRequest,
    JsonResult,
    LoginRequest,
    RegisterRequest,
    SeedResponse,
    SetupResponse,
    TextResult,
    User,
    UserRole,
    partial_model,
)
from .seed import seed_database, seed_demo_data
from .utils import new_id

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="tutordesk API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sentry_sdk.init(
    dsn=settings.sentry_dsn,
    integrations=[FastApiIntegration()],
    traces_sample_rate=0.5,
)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {str(exc)}")
    logger.error(f"Stack trace:\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc.detail)}
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# --- Database setup ---

@app.post("/api/setup", response_model=SetupResponse)
def setup(db: Session = Depends(get_db)):
    try:
        create_tables()
        created = seed_database(db)
    except Exception as e:
        logger.error(f"Setup failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Database setup failed.")
    return SetupResponse(success=True, message=f"Database ready ({created} seed rows created).")


@app.post("/api/seed", response_model=SeedResponse)
def seed(
    db: Session = Depends(get_db),
    user: models.User = Depends(require_role(UserRole.COACH, UserRole.SUPERADMIN)),
):
    actor = user.email
    try:
        counts = seed_demo_data(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Demo seed requested by {actor} failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to seed database.")
    logger.info(f"{actor} reset the database to demo data")
    return SeedResponse(success=True, message="Database reset and seeded successfully.", counts=counts)


# --- Auth ---

def find_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()

@app.post("/api/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if not payload.name.strip() or not payload.email.strip() or not payload.password:
        raise HTTPException(status_code=400, detail="Name, email, and password are required")
    if find_user_by_email(db, payload.email):
        raise HTTPException(status_code=409, detail="Email already exists")

    # The very first account administers the platform
    is_first_user = db.query(models.User).count() == 0
    role = UserRole.SUPERADMIN if is_first_user else payload.role

    user = models.User(
        id=payload.id or new_id(),
        name=payload.name.strip(),
        email=payload.email.strip(),
        password=hash_password(payload.password),
        role=role.value,
        profile_picture=payload.profile_picture or f"https://i.pravatar.cc/150?u={payload.email}",
        child_ids=[],
        parent_ids=[],
        earned_badge_ids=[],
        xp=0,
        streak=0,
    )
    db.add(user)

    announcements = db.get(models.Conversation, ANNOUNCEMENTS_CONVERSATION_ID)
    if announcements is not None:
        # reassign so the JSON column is flagged dirty
        announcements.participant_ids = [*(announcements.participant_ids or []), user.id]

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already exists")
    db.refresh(user)
    logger.info(f"Registered {user.email} as {user.role}")
    return AuthResponse(user=User.model_validate(user), token=create_token(user))

@app.post("/api/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    user = find_user_by_email(db, payload.email)
    if user is None or not verify_password(user, payload.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthResponse(user=User.model_validate(user), token=create_token(user))

@app.get("/api/auth/verify", response_model=User)
def verify(user: models.User = Depends(current_user)):
    return user


# --- Conversations ---

@app.post("/api/conversations/findOrCreate", response_model=Conversation)
def find_or_create_conversation(
    payload: FindOrCreateRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: models.User = Depends(current_user),
):
    if payload.user_id1 == payload.user_id2:
        raise HTTPException(status_code=400, detail="A conversation needs two different users")
    wanted = {payload.user_id1, payload.user_id2}
    direct = db.query(models.Conversation).filter(models.Conversation.is_group.is_(False)).all()
    for conversation in direct:
        if set(conversation.participant_ids or []) == wanted:
            return conversation

    conversation = models.Conversation(
        id=new_id(),
        participant_ids=[payload.user_id1, payload.user_id2],
        is_group=False,
        is_archived=False,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    response.status_code = status.HTTP_201_CREATED
    return conversation


# --- Generic CRUD ---

ENTITY_MODELS = {
    "users": models.User,
    "assignments": models.Assignment,
    "messages": models.Message,
    "conversations": models.Conversation,
    "notifications": models.Notification,
    "templates": models.AssignmentTemplate,
    "resources": models.Resource,
    "goals": models.Goal,
    "badges": models.Badge,
    "calendarEvents": models.CalendarEvent,
    "exams": models.Exam,
    "questions": models.Question,
}


def register_entity_routes(entity: str, model, schema):
    update_schema = partial_model(schema)

    @app.get(f"/api/{entity}", response_model=List[schema], name=f"list_{entity}")
    def list_entities(db: Session = Depends(get_db), user: models.User = Depends(current_user)):
        return db.query(model).all()

    @app.get(f"/api/{entity}/{{entity_id}}", response_model=schema, name=f"get_{entity}")
    def get_entity(entity_id: str, db: Session = Depends(get_db), user: models.User = Depends(current_user)):
        row = db.get(model, entity_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Not found")
        return row

    @app.post(f"/api/{entity}", response_model=schema, status_code=status.HTTP_201_CREATED, name=f"create_{entity}")
    def create_entity(payload: schema, db: Session = Depends(get_db), user: models.User = Depends(current_user)):
        row = model(**payload.model_dump(mode="json"))
        db.add(row)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"POST /api/{entity} conflict: {e.orig}")
            raise HTTPException(status_code=409, detail=f"Conflicting {entity} record")
        db.refresh(row)
        return row

    @app.put(f"/api/{entity}/{{entity_id}}", response_model=schema, name=f"update_{entity}")
    def update_entity(
        entity_id: str,
        payload: update_schema,
        db: Session = Depends(get_db),
        user: models.User = Depends(current_user),
    ):
        updates = payload.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        row = db.get(model, entity_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Not found")

        for key, value in updates.items():
            setattr(row, key, value)
        try:
            schema.model_validate(row)
        except ValidationError as e:
            db.rollback()
            raise HTTPException(status_code=422, detail=str(e))

        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"PUT /api/{entity}/{entity_id} conflict: {e.orig}")
            raise HTTPException(status_code=409, detail=f"Conflicting {entity} record")
        db.refresh(row)
        return row

    @app.delete(
        f"/api/{entity}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        name=f"delete_{entity}",
    )
    def delete_entities(
        payload: DeleteRequest,
        db: Session = Depends(get_db),
        user: models.User = Depends(require_role(UserRole.COACH, UserRole.SUPERADMIN)),
    ):
        actor = user.email
        deleted = db.query(model).filter(model.id.in_(payload.ids)).delete(synchronize_session=False)
        db.commit()
        logger.info(f"{actor} deleted {deleted} {entity}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)


for entity_name, entity_model in ENTITY_MODELS.items():
    register_entity_routes(entity_name, entity_model, ENTITY_SCHEMAS[entity_name])


# --- AI proxy ---

@app.post("/api/ai/generateText", response_model=TextResult)
async def ai_generate_text(payload: GenerateTextRequest, user: models.User = Depends(current_user)):
    try:
        result = await ai.generate_text(payload.prompt, payload.temperature)
    except Exception as e:
        logger.error(f"Error in generateText: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return TextResult(result=result)

@app.post("/api/ai/generateJson", response_model=JsonResult)
async def ai_generate_json(payload: GenerateJsonRequest, user: models.User = Depends(current_user)):
    if payload.schema_name not in AI_SCHEMAS:
        raise HTTPException(status_code=400, detail="Invalid schema name")
    try:
        result = await ai.generate_json(payload.prompt, payload.schema_name)
    except Exception as e:
        logger.error(f"Error in generateJson ({payload.schema_name}): {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return JsonResult(result=result)

@app.post("/api/ai/chat", response_model=ChatReply)
async def ai_chat(payload: ChatRequest, user: models.User = Depends(current_user)):
    try:
        text = await ai.chat(payload.history, payload.system_instruction)
    except Exception as e:
        logger.error(f"Error in chat: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return ChatReply(text=text)
