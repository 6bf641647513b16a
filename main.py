import logging
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import quiz_store
from config import get_settings
from database import get_db, init_db
from errors import QuizPipelineError
from llm_quiz_generator import CompletionClient
from models import AttemptBody, GenerateBody, QuizPayload
from pipeline import QuizFailed, QuizPipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

app = FastAPI(title="AI Wiki Quiz Generator API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def empty_preflight_body(request: Request, call_next):
    """CORSMiddleware answers browser preflights with a text body; preflight replies carry none."""
    response = await call_next(request)
    if request.method == "OPTIONS" and "access-control-request-method" in request.headers:
        headers = {
            k: v for k, v in response.headers.items() if k not in ("content-length", "content-type")
        }
        return Response(status_code=response.status_code, headers=headers)
    return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request body: {loc + ': ' if loc else ''}{first.get('msg', '')}"
    else:
        message = "Invalid request body"
    return _error(400, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return _error(500, "Failed to generate quiz")


@app.on_event("startup")
def on_startup():
    init_db()


def get_pipeline() -> QuizPipeline:
    settings = get_settings()
    return QuizPipeline(CompletionClient.from_settings(settings), fetch_timeout=settings.fetch_timeout)


@app.get("/")
def root():
    """API root endpoint with basic information."""
    return {
        "name": "AI Wiki Quiz Generator API",
        "version": "1.0.0",
        "endpoints": [
            "/generate-quiz",
            "/quizzes",
            "/quizzes/{id}",
            "/quizzes/{id}/attempts",
        ],
    }


@app.options("/generate-quiz")
def generate_quiz_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/generate-quiz")
def generate_quiz_endpoint(
    body: Optional[GenerateBody] = None,
    pipeline: QuizPipeline = Depends(get_pipeline),
):
    """
    Generate a quiz from a Wikipedia URL.
    Returns the quiz payload with wikipedia_url attached, or {"error": ...}.
    """
    result = pipeline.run(body.wikipediaUrl if body else None)
    if isinstance(result, QuizFailed):
        return _error(result.status_code, result.message)
    return JSONResponse(content=result.payload.model_dump(), headers=CORS_HEADERS)


@app.post("/quizzes", status_code=201)
def create_quiz(payload: QuizPayload, db: Session = Depends(get_db)):
    """Store a generated quiz and its questions."""
    try:
        quiz = quiz_store.save_quiz(db, payload)
    except QuizPipelineError as e:
        return _error(e.status_code, e.message)
    logger.info("Stored quiz %d (%d questions)", quiz.id, len(quiz.questions))
    return quiz_store.quiz_to_dict(quiz)


@app.get("/quizzes")
def history(db: Session = Depends(get_db)):
    """Get list of all stored quizzes."""
    return [quiz_store.quiz_summary_to_dict(q, n) for q, n in quiz_store.list_quizzes(db)]


@app.get("/quizzes/{quiz_id}")
def get_quiz(quiz_id: int, db: Session = Depends(get_db)):
    """Get full quiz details by ID."""
    quiz = quiz_store.get_quiz(db, quiz_id)
    if not quiz:
        return _error(404, "Quiz not found")
    return quiz_store.quiz_to_dict(quiz)


@app.post("/quizzes/{quiz_id}/attempts", status_code=201)
def submit_attempt(quiz_id: int, body: AttemptBody, db: Session = Depends(get_db)):
    """Grade one answer letter per question and record the attempt."""
    quiz = quiz_store.get_quiz(db, quiz_id)
    if not quiz:
        return _error(404, "Quiz not found")
    try:
        attempt, results = quiz_store.record_attempt(db, quiz, body.answers)
    except QuizPipelineError as e:
        return _error(e.status_code, e.message)
    logger.info("Quiz %d attempt: %d/%d", quiz_id, attempt.score, attempt.total_questions)
    return quiz_store.attempt_to_dict(attempt, results)


@app.get("/quizzes/{quiz_id}/attempts")
def list_attempts(quiz_id: int, db: Session = Depends(get_db)):
    quiz = quiz_store.get_quiz(db, quiz_id)
    if not quiz:
        return _error(404, "Quiz not found")
    return [quiz_store.attempt_to_dict(a) for a in quiz_store.list_attempts(db, quiz_id)]


def run():
    """Serve the API with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
