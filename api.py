import logging
from datetime import date, datetime
from typing import List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from library import Library
from book import Book
from member import Member
from borrowing_record import BorrowingRecord
from config import settings
from database import get_db_connection
from validators import DateValidator

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

library = Library()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} {settings.app_version} starting (db: {library.db_file})")
    try:
        yield
    finally:
        library.close()
        logger.info(f"{settings.app_name} stopped")

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter(prefix="/api")

# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    genre: str | None = None
    due_date: date | None = None

class BookCreateModel(BaseModel):
    title: str = Field(description="Book title")
    author: str = Field(description="Author name")
    genre: str | None = Field(default=None, description="Genre, e.g. Fiction")
    due_date: date | None = Field(default=None, description="Due date of the current loan (YYYY-MM-DD)")

class MemberModel(BaseModel):
    id: int
    name: str
    contact: str | None = None

class MemberCreateModel(BaseModel):
    name: str
    contact: str | None = Field(default=None, description="E-mail address or phone number")

class BorrowingRecordModel(BaseModel):
    id: int
    book_id: int
    member_id: int
    borrow_date: date
    due_date: date
    return_date: date | None = None

class BorrowingRecordCreateModel(BaseModel):
    book_id: int
    member_id: int
    borrow_date: date
    due_date: date
    return_date: date | None = None

class BorrowRequestModel(BaseModel):
    """Borrow and due dates are set by the server."""
    book_id: int
    member_id: int

class StatsModel(BaseModel):
    total_books: int
    total_members: int
    active_loans: int
    overdue_loans: int

# --- Helper Functions ---
def _book_from_payload(payload: BookCreateModel) -> Book:
    return Book(title=payload.title, author=payload.author, genre=payload.genre, due_date=payload.due_date)

def _member_from_payload(payload: MemberCreateModel) -> Member:
    return Member(name=payload.name, contact=payload.contact)

def _record_from_payload(payload: BorrowingRecordCreateModel) -> BorrowingRecord:
    return BorrowingRecord(
        book_id=payload.book_id,
        member_id=payload.member_id,
        borrow_date=payload.borrow_date,
        due_date=payload.due_date,
        return_date=payload.return_date,
    )

def _books_response(books: List[Book]) -> List[BookModel]:
    return [BookModel(**b.to_dict()) for b in books]

# --- Health Check ---
@app.get("/health")
def health_check():
    """Lightweight health endpoint: tries a quick database query."""
    db_ok = True
    try:
        conn = get_db_connection(library.db_file)
        conn.execute("SELECT 1")
        conn.close()
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        db_ok = False
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "db": db_ok,
    }

@app.get("/stats", response_model=StatsModel)
def get_library_stats():
    """Counts of books, members and loans."""
    return StatsModel(**library.get_statistics())

# ==================== Book Endpoints ====================

@router.get("/books", response_model=List[BookModel])
def get_all_books():
    books = library.list_books()
    logger.info(f"The list of books returned: {len(books)} book(s)")
    return _books_response(books)

# Filter routes are registered before /books/{book_id} so their paths aren't read as ids.
@router.get("/books/genre", response_model=List[BookModel])
def get_books_by_genre(genre: str = Query(..., description="Genre to match, e.g. Fiction")):
    """Books of one genre, e.g. /api/books/genre?genre=Fiction."""
    books = library.get_books_by_genre(genre)
    logger.info(f"The books retrieved for genre {genre}: {len(books)}")
    return _books_response(books)

@router.get("/books/author/{author}", response_model=List[BookModel])
def get_books_by_author(author: str, genre: Optional[str] = Query(None, description="Optional genre filter")):
    """Books by an author, optionally narrowed to a genre: /api/books/author/Harper%20Lee?genre=Fiction."""
    books = library.get_books_by_author_and_genre(author, genre)
    logger.info(f"The books retrieved for the author and genre {author} - {genre}")
    return _books_response(books)

@router.get("/books/dueondate", response_model=List[BookModel])
def get_books_due_on_date(due_date: str = Query(..., alias="dueDate", description="Date as dd/MM/yyyy, e.g. 20/03/2025")):
    """Books due back on the given day."""
    try:
        parsed = DateValidator.parse_query_date(due_date, settings.due_date_format)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    books = library.get_books_due_on_date(parsed)
    logger.info(f"The books retrieved by due date {parsed}: {len(books)}")
    return _books_response(books)

@router.get("/books/{book_id}", response_model=BookModel)
def get_book_by_id(book_id: int):
    book = library.find_book(book_id)
    logger.info(f"The book returned: {book}")
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with ID {book_id} not found.")
    return BookModel(**book.to_dict())

@router.post("/books", response_model=int, status_code=status.HTTP_201_CREATED)
def add_books(payload: List[BookCreateModel]):
    """Add one or more books. Responds with the number of books now in the library."""
    try:
        added = library.add_books(_book_from_payload(p) for p in payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info(f"The books were added: {len(added)}")
    return library.count_books()

@router.put("/books/{book_id}", response_model=BookModel)
def update_book(book_id: int, payload: BookCreateModel):
    try:
        book = library.update_book(book_id, _book_from_payload(payload))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with ID {book_id} not found.")
    logger.info(f"The book has been updated: {book}")
    return BookModel(**book.to_dict())

@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(book_id: int):
    if not library.remove_book(book_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with ID {book_id} not found.")
    logger.info(f"The book has been deleted: {book_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Path spelling kept as published for existing clients.
@router.get("/bookavailabileDate", response_model=date)
def check_availability(book_id: int = Query(..., alias="bookId")):
    """Date from which a book can be borrowed, e.g. /api/bookavailabileDate?bookId=1."""
    available_on = library.check_availability(book_id)
    if available_on is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with ID {book_id} not found.")
    logger.info(f"Book {book_id} is available from {available_on}")
    return available_on

# ==================== Member Endpoints ====================

@router.get("/members", response_model=List[MemberModel])
def get_all_members():
    members = library.list_members()
    logger.info(f"The members in the system: {len(members)}")
    return [MemberModel(**m.to_dict()) for m in members]

@router.get("/members/{member_id}", response_model=MemberModel)
def get_member_by_id(member_id: int):
    member = library.find_member(member_id)
    logger.info(f"The member you retrieved: {member}")
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Member with ID {member_id} not found.")
    return MemberModel(**member.to_dict())

@router.post("/members", response_model=int, status_code=status.HTTP_201_CREATED)
def add_members(payload: List[MemberCreateModel]):
    """Add one or more members. Responds with the number of members now registered."""
    try:
        added = library.add_members(_member_from_payload(p) for p in payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info(f"The members have been added: {len(added)}")
    return library.count_members()

@router.put("/members/{member_id}", response_model=MemberModel)
def update_member(member_id: int, payload: MemberCreateModel):
    try:
        member = library.update_member(member_id, _member_from_payload(payload))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Member with ID {member_id} not found.")
    logger.info(f"The member has been updated: {member}")
    return MemberModel(**member.to_dict())

@router.delete("/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(member_id: int):
    if not library.remove_member(member_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Member with ID {member_id} not found.")
    logger.info(f"The member has been deleted: {member_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# ==================== BorrowingRecord Endpoints ====================

@router.get("/borrowing-records", response_model=List[BorrowingRecordModel])
def get_all_borrowing_records():
    records = library.list_borrowing_records()
    logger.info(f"The records have been retrieved: {len(records)}")
    return [BorrowingRecordModel(**r.to_dict()) for r in records]

@router.get("/borrowing-records/{record_id}", response_model=BorrowingRecordModel)
def get_borrowing_record_by_id(record_id: int):
    record = library.find_borrowing_record(record_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Borrowing record with ID {record_id} not found.")
    return BorrowingRecordModel(**record.to_dict())

@router.post("/borrowing-records", response_model=BorrowingRecordModel, status_code=status.HTTP_201_CREATED)
def add_borrowing_record(payload: BorrowingRecordCreateModel):
    try:
        record = library.add_borrowing_record(_record_from_payload(payload))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info(f"The borrowing record has been added: {record}")
    return BorrowingRecordModel(**record.to_dict())

@router.put("/borrowing-records/{record_id}", response_model=BorrowingRecordModel)
def update_borrowing_record(record_id: int, payload: BorrowingRecordCreateModel):
    try:
        record = library.update_borrowing_record(record_id, _record_from_payload(payload))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Borrowing record with ID {record_id} not found.")
    logger.info(f"The borrowing record has been updated: {record}")
    return BorrowingRecordModel(**record.to_dict())

@router.delete("/borrowing-records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_borrowing_record(record_id: int):
    if not library.remove_borrowing_record(record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Borrowing record with ID {record_id} not found.")
    logger.info(f"The borrowing record has been deleted: {record_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/borrow", response_model=BorrowingRecordModel, status_code=status.HTTP_201_CREATED)
def borrow_book(payload: BorrowRequestModel):
    """Lend a book to a member. The loan starts today and lasts the configured loan period."""
    try:
        record = library.borrow_book(payload.book_id, payload.member_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    logger.info(f"The book has been borrowed: {record}")
    return BorrowingRecordModel(**record.to_dict())

@router.put("/return/{record_id}")
def return_book(record_id: int):
    record = library.return_book(record_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Borrowing record with ID {record_id} not found.")
    logger.info(f"The book has been returned: {record}")
    return Response(status_code=status.HTTP_200_OK)


app.include_router(router)
