from fastapi import FastAPI, UploadFile, File, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
from typing import List, Tuple

from .aggregator import aggregate
from .config import Settings
from .csv_parser import parse_transactions
from .exceptions import (
    ChatSessionError,
    ConfigError,
    LLMError,
    ParseError,
    SessionNotFoundError,
)
from .insights import InsightsService
from .langfuse_tracer import LangfuseTracer
from .logging_config import setup_logging
from .models import (
    AnalysisResult,
    AnalyzeRequest,
    ChatRequest,
    ChatResponse,
    InsightsResponse,
    Transaction,
    UploadResponse,
)
from .sessions import SessionStore, UploadSession

PREVIEW_ROWS = 10

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Visualizer API")

# CORS middleware for React frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.settings = settings
app.state.sessions = SessionStore()
app.state.insights = InsightsService(settings, tracer=LangfuseTracer())


def parse_and_aggregate(content: str) -> Tuple[List[Transaction], AnalysisResult]:
    """Run the parser and aggregator, mapping parser errors to HTTP 400"""
    try:
        transactions = parse_transactions(content)
    except ParseError as e:
        logger.warning(f"Rejected upload: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if not transactions:
        raise HTTPException(
            status_code=422, detail="No valid transactions found in the file."
        )

    return transactions, aggregate(transactions)


def get_session(request: Request, session_id: str) -> UploadSession:
    try:
        return request.app.state.sessions.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/")
def read_root():
    return {"message": "Finance Visualizer API"}


@app.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """Upload a CSV file, analyze it and open a session on it"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    # Check for .csv extension (case-insensitive)
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=400,
            detail=f"File must be a CSV file with .csv extension. Received: {file.filename}",
        )

    max_bytes = request.app.state.settings.max_upload_bytes
    contents = await file.read(max_bytes + 1)
    if not contents:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(contents) > max_bytes:
        raise HTTPException(status_code=413, detail="File is too large")

    try:
        decoded = contents.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400,
            detail="File encoding error. Please ensure the file is UTF-8 encoded",
        )

    transactions, analysis = parse_and_aggregate(decoded)
    session = request.app.state.sessions.create(transactions, analysis)
    logger.info(f"Parsed {len(transactions)} transactions from {file.filename}")

    return UploadResponse(
        session_id=session.session_id,
        total_transactions=len(transactions),
        transactions=transactions[:PREVIEW_ROWS],
        analysis=analysis,
    )


@app.post("/analyze", response_model=AnalysisResult)
def analyze_text(body: AnalyzeRequest):
    """Analyze CSV text without opening a session"""
    _, analysis = parse_and_aggregate(body.content)
    return analysis


@app.get("/sessions/{session_id}/analysis", response_model=AnalysisResult)
def get_analysis(request: Request, session_id: str):
    return get_session(request, session_id).analysis


@app.get("/sessions/{session_id}/transactions", response_model=List[Transaction])
def get_transactions(request: Request, session_id: str):
    return get_session(request, session_id).transactions


@app.post("/sessions/{session_id}/insights", response_model=InsightsResponse)
def get_insights(request: Request, session_id: str):
    """Generate (once) the model's Markdown report for a session"""
    session = get_session(request, session_id)
    if session.insights is None:
        try:
            session.insights = request.app.state.insights.generate_insights(
                session.transactions, session_id
            )
        except ConfigError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except LLMError as e:
            raise HTTPException(status_code=502, detail=str(e))

    return InsightsResponse(session_id=session_id, insights=session.insights)


@app.post("/sessions/{session_id}/chat", response_model=ChatResponse)
def chat(request: Request, session_id: str, body: ChatRequest):
    """Ask the assistant a question about the session's transactions"""
    session = get_session(request, session_id)
    insights = request.app.state.insights
    try:
        chat_session = session.open_chat(
            lambda: insights.start_chat(session.transactions, session_id)
        )
        reply = chat_session.send(body.message)
    except ChatSessionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return ChatResponse(session_id=session_id, reply=reply)


@app.delete("/sessions/{session_id}")
def reset_session(request: Request, session_id: str):
    """Discard a session and its chat"""
    try:
        request.app.state.sessions.discard(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Session reset", "session_id": session_id}
