"""
app/main.py

Servicio de catálogo de libros (FastAPI) con relación Muchos-a-Muchos Libros <-> Autores.

- Un libro tiene cero o más autores (al crear) y al menos uno (al actualizar).
- Los autores se identifican por nombre y se crean la primera vez que un libro
  los menciona. Nunca se borran desde aquí, aunque se queden sin libros.

Endpoints clave:
- GET    /books             -> lista libros (autores como nombres)
- GET    /books/{id}        -> detalle
- POST   /books             -> crea libro (autores por nombre, find-or-create)
- PUT    /books/{id}        -> actualiza campos y reemplaza autores
- DELETE /books/{id}        -> borra y devuelve el libro borrado
- GET    /books/{id}/authors, /authors, /authors/{id}
- GET    /health, /metrics
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import List
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import crud, models, schemas
from app.config import DOCS_URL, LOG_LEVEL, LOG_LEVEL_VALID
from app.database import Base, engine, get_db
from app.errors import NotFoundError, StoreError, ValidationError

logger = logging.getLogger("app")
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s"
)
if not LOG_LEVEL_VALID:
    logger.warning("LOG_LEVEL desconocido %r, se usa INFO", os.getenv("LOG_LEVEL"))

try:
    # checkfirst=True por defecto; si otra réplica está creando las tablas
    # a la vez, el choque se registra y seguimos
    Base.metadata.create_all(bind=engine)
    logger.info("Tablas verificadas/creadas correctamente.")
except SQLAlchemyError as e:
    logger.warning(f"Aviso en DB: Las tablas ya existen o están siendo creadas: {e}")

app = FastAPI(
    title="Book Directory API",
    description="Servicio encargado de la gestión de libros y sus autores",
    version="1.0.0",
    docs_url=DOCS_URL,
    openapi_tags=[
        {"name": "Books", "description": "The books managing API"},
        {"name": "Authors", "description": "Authors referenced by the books"},
    ],
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"]
)


def _route_label(request: Request) -> str:
    # Plantilla de la ruta (/books/{book_id}), no la URL concreta: una serie por endpoint
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id", str(uuid4()))
    start = time.time()

    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception(
            "request_id=%s method=%s path=%s error=%s",
            request_id, request.method, request.url.path, str(exc)
        )
        raise

    duration_ms = int((time.time() - start) * 1000)
    logger.info(
        "request_id=%s method=%s path=%s status=%s duration_ms=%s",
        request_id, request.method, request.url.path, response.status_code, duration_ms
    )
    path = _route_label(request)
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe((time.time() - start))

    response.headers["X-Request-Id"] = request_id
    return response


@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

@contextmanager
def _server_errors(detail: str):
    """
    Frontera de errores de una ruta: los fallos de la base de datos se
    registran con su causa y se devuelven como 500 con un mensaje genérico.
    """
    try:
        yield
    except StoreError:
        logger.exception(detail)
        raise HTTPException(status_code=500, detail=detail)


def get_existing_book(book_id: int, db: Session = Depends(get_db)) -> models.Book:
    """
    Dependencia común de las rutas /books/{book_id}.

    Si el libro no existe corta la petición con 404 antes de modificar nada;
    si existe, la ruta recibe el registro ya cargado.
    """
    try:
        with _server_errors(f"An error occurred while checking the book {book_id}"):
            return crud.require_book(db, book_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Book not found")


# ---------------------------------------------------------------------
# Libros
# ---------------------------------------------------------------------

@app.get("/books", response_model=List[schemas.Book], tags=["Books"],
         summary="Returns the list of all the books")
def list_books(db: Session = Depends(get_db)):
    """Lista todos los libros, sin filtros ni paginación."""
    with _server_errors("An error occurred while retrieving the books"):
        return crud.list_books(db)


@app.get("/books/{book_id}", response_model=schemas.Book, tags=["Books"],
         summary="Get the book by id", responses={404: {"description": "The book was not found"}})
def get_book(book: models.Book = Depends(get_existing_book)):
    return book


@app.post("/books", response_model=schemas.Book, tags=["Books"], summary="Create a new book")
def create_book(payload: schemas.BookCreate, db: Session = Depends(get_db)):
    """
    Crea un libro.

    Los autores llegan por nombre: los que no existen se crean. La lista
    puede venir vacía.
    """
    with _server_errors("An error occurred while creating the book"):
        return crud.create_book(db, payload)


@app.put("/books/{book_id}", response_model=schemas.Book, tags=["Books"],
         summary="Update the book by the id",
         responses={
             400: {"description": "At least one author is required"},
             404: {"description": "The book was not found"},
         })
def update_book(
    payload: schemas.BookUpdate,
    book: models.Book = Depends(get_existing_book),
    db: Session = Depends(get_db),
):
    """
    Actualiza los campos del libro y reemplaza sus autores (modo 'replace').

    Los autores que dejan de estar en la lista se desenlazan, pero siguen
    existiendo.
    """
    try:
        with _server_errors("An error occurred while updating the book"):
            return crud.update_book(db, book, payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/books/{book_id}", response_model=schemas.DeletedBook, tags=["Books"],
            summary="Remove the book by id", responses={404: {"description": "The book was not found"}})
def delete_book(book: models.Book = Depends(get_existing_book), db: Session = Depends(get_db)):
    with _server_errors("An error occurred while deleting the book"):
        deleted = crud.delete_book(db, book)
    return {"message": "Book deleted successfully", "deleted_book": deleted}


@app.get("/books/{book_id}/authors", response_model=List[schemas.Author], tags=["Books"])
def get_book_authors(book: models.Book = Depends(get_existing_book)):
    """
    Devuelve SOLO los autores de un libro.
    """
    return book.authors


# ---------------------------------------------------------------------
# Autores (solo lectura: se crean a través de los libros)
# ---------------------------------------------------------------------

@app.get("/authors", response_model=List[schemas.Author], tags=["Authors"], summary="List authors")
def list_authors(db: Session = Depends(get_db)):
    with _server_errors("An error occurred while retrieving the authors"):
        return crud.list_authors(db)


@app.get("/authors/{author_id}", response_model=schemas.AuthorDetail, tags=["Authors"])
def read_author(author_id: int, db: Session = Depends(get_db)):
    """Obtiene un autor por id junto con sus libros (id y título)."""
    with _server_errors("An error occurred while fetching the author"):
        author = crud.get_author(db, author_id)
    if author is None:
        raise HTTPException(status_code=404, detail="Author not found")
    return author


# ---------------------------------------------------------------------
# Utilidad / Observabilidad básica
# ---------------------------------------------------------------------

@app.get("/")
def read_root():
    return {
        "service": "Books Service",
        "status": "Online",
        "docs": DOCS_URL,
        "message": "Bienvenido al catálogo de libros",
    }


@app.get("/health")
def health_check():
    """
    Healthcheck simple:
    - Devuelve healthy si puede abrir una conexión y ejecutar SELECT 1.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}
