"""
app/crud.py

Operaciones sobre libros y autores usando la sesión de SQLAlchemy.

Piezas con lógica propia:
- resolve_author_ids: find-or-create de autores por nombre (clave natural).
- reconcile_authors: deja el conjunto de autores de un libro exactamente igual
  al conjunto objetivo con el mínimo de enlaces/desenlaces.

La sesión se recibe siempre como parámetro (la crea get_db por petición).
"""

import logging
from contextlib import contextmanager
from typing import Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app import models, schemas
from app.errors import NotFoundError, StoreError, ValidationError

logger = logging.getLogger("app.crud")


@contextmanager
def _store_errors(db: Session, action: str):
    """Convierte cualquier error de SQLAlchemy en StoreError tras hacer rollback."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(f"Database error while {action}") from exc


# ---------------------------------------------------------------------
# Autores
# ---------------------------------------------------------------------

def find_author_by_name(db: Session, name: str) -> Optional[models.Author]:
    return db.scalar(select(models.Author).where(models.Author.name == name))


def get_or_create_author(db: Session, name: str) -> models.Author:
    """
    Devuelve el autor con ese nombre, creándolo si no existe.

    El INSERT se confirma por separado para que otras peticiones lo vean.
    Si otra petición lo creó entre nuestra búsqueda y nuestro INSERT, la
    restricción UNIQUE lo rechaza: se hace rollback y se vuelve a buscar
    una única vez.
    """
    author = find_author_by_name(db, name)
    if author is not None:
        return author

    author = models.Author(name=name)
    db.add(author)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("author name=%r created concurrently, retrying lookup", name)
        author = find_author_by_name(db, name)
        if author is None:
            raise StoreError(f"Could not create or find author {name!r}")
        return author

    logger.info("author created id=%s name=%r", author.id, name)
    return author


def resolve_author_ids(db: Session, names: Iterable[str]) -> List[int]:
    """
    Traduce nombres de autor a ids, en el mismo orden de entrada.

    Nombres repetidos devuelven el mismo id. Si algo falla a mitad, los
    autores ya creados se quedan creados.
    """
    resolved = {}
    ids = []
    with _store_errors(db, "resolving authors"):
        for name in names:
            if name not in resolved:
                resolved[name] = get_or_create_author(db, name).id
            ids.append(resolved[name])
    return ids


def list_authors(db: Session) -> List[models.Author]:
    with _store_errors(db, "listing authors"):
        return list(db.scalars(select(models.Author).order_by(models.Author.id)))


def get_author(db: Session, author_id: int) -> Optional[models.Author]:
    with _store_errors(db, "fetching the author"):
        stmt = (
            select(models.Author)
            .options(selectinload(models.Author.books))
            .where(models.Author.id == author_id)
        )
        return db.scalar(stmt)


# ---------------------------------------------------------------------
# Relación libro <-> autores
# ---------------------------------------------------------------------

def _authors_by_id(db: Session, author_ids: Iterable[int]) -> List[models.Author]:
    ids = set(author_ids)
    if not ids:
        return []
    return list(db.scalars(select(models.Author).where(models.Author.id.in_(ids))))


def reconcile_authors(db: Session, book: models.Book, target_ids: Set[int]) -> models.Book:
    """
    Hace que los autores del libro sean exactamente target_ids.

    Primero se enlazan los que faltan y después se desenlazan los sobrantes,
    así el libro nunca se queda sin autores por el camino y los autores que
    se mantienen no se tocan. No confirma la transacción.
    """
    target_ids = set(target_ids)

    # 1) connect (idempotente: solo los que aún no están enlazados)
    missing = target_ids - book.author_ids
    for author in _authors_by_id(db, missing):
        book.authors.append(author)
    db.flush()

    # 2) releer el conjunto actual tras el connect
    db.refresh(book, attribute_names=["authors"])
    current_ids = book.author_ids

    # 3) + 4) disconnect de los sobrantes
    to_remove = current_ids - target_ids
    if to_remove:
        for author in [a for a in book.authors if a.id in to_remove]:
            book.authors.remove(author)
        db.flush()
        db.refresh(book, attribute_names=["authors"])

    logger.debug(
        "book id=%s authors reconciled connected=%s disconnected=%s",
        book.id, sorted(missing), sorted(to_remove),
    )
    return book


# ---------------------------------------------------------------------
# Libros
# ---------------------------------------------------------------------

def list_books(db: Session) -> List[models.Book]:
    with _store_errors(db, "retrieving the books"):
        stmt = (
            select(models.Book)
            .options(selectinload(models.Book.authors))
            .order_by(models.Book.id)
        )
        return list(db.scalars(stmt))


def get_book(db: Session, book_id: int) -> Optional[models.Book]:
    with _store_errors(db, "fetching the book"):
        stmt = (
            select(models.Book)
            .options(selectinload(models.Book.authors))
            .where(models.Book.id == book_id)
        )
        return db.scalar(stmt)


def require_book(db: Session, book_id: int) -> models.Book:
    book = get_book(db, book_id)
    if book is None:
        raise NotFoundError(f"Book {book_id} not found")
    return book


def _book_fields(payload: schemas.BookBase) -> dict:
    return payload.model_dump(include=set(schemas.BookBase.model_fields))


def create_book(db: Session, payload: schemas.BookCreate) -> models.Book:
    """Crea el libro; la lista de autores puede venir vacía."""
    author_ids = resolve_author_ids(db, payload.authors)

    with _store_errors(db, "creating the book"):
        book = models.Book(**_book_fields(payload))
        book.authors = _authors_by_id(db, author_ids)
        db.add(book)
        db.commit()
        db.refresh(book)

    logger.info("book created id=%s authors=%s", book.id, len(book.authors))
    return book


def update_book(db: Session, book: models.Book, payload: schemas.BookUpdate) -> models.Book:
    """
    Actualiza los campos del libro y reemplaza su lista de autores.

    A diferencia del alta, aquí se exige al menos un autor.
    """
    if not payload.authors:
        raise ValidationError("At least one author is required for the book")

    target_ids = set(resolve_author_ids(db, payload.authors))

    with _store_errors(db, "updating the book"):
        for field, value in _book_fields(payload).items():
            setattr(book, field, value)
        reconcile_authors(db, book, target_ids)
        db.commit()
        db.refresh(book)

    logger.info("book updated id=%s authors=%s", book.id, len(book.authors))
    return book


def delete_book(db: Session, book: models.Book) -> schemas.Book:
    """
    Borra el libro y devuelve cómo estaba justo antes.

    Las filas de book_authors desaparecen con él; los autores no se borran.
    """
    with _store_errors(db, "deleting the book"):
        snapshot = schemas.Book.model_validate(book)
        db.delete(book)
        db.commit()

    logger.info("book deleted id=%s", snapshot.id)
    return snapshot
