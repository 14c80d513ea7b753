from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # En el JSON los campos viajan en camelCase (pageCount, publishedDate...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookBase(CamelModel):
    title: str
    page_count: int
    published_date: datetime
    thumbnail_url: str
    short_description: str
    long_description: str
    status: str

    @field_validator("published_date")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        # SQLite guarda la fecha sin offset: se pasa antes a UTC para no
        # perder la hora real (PostgreSQL devolverá el mismo instante en UTC)
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value


class BookWrite(BookBase):
    # Nombres de autores; los que no existan se crean al vuelo.
    # "authors": null equivale a lista vacía
    authors: Optional[List[str]] = []

    @field_validator("authors")
    @classmethod
    def _null_authors(cls, value: Optional[List[str]]) -> List[str]:
        return value or []


class BookCreate(BookWrite):
    pass


class BookUpdate(BookWrite):
    # La validación de "al menos un autor" la hace crud.update_book
    pass


class Book(BookBase):
    id: int
    # Hacia fuera los autores se proyectan a sus nombres
    authors: List[str] = []

    model_config = ConfigDict(from_attributes=True)

    @field_validator("authors", mode="before")
    @classmethod
    def _author_names(cls, value: Any) -> Any:
        if value is None:
            return []
        return [getattr(author, "name", author) for author in value]


class DeletedBook(CamelModel):
    message: str
    deleted_book: Book


class AuthorBase(BaseModel):
    name: str


class Author(AuthorBase):
    id: int
    model_config = ConfigDict(from_attributes=True)


class BookForAuthor(BaseModel):
    id: int
    title: str
    model_config = ConfigDict(from_attributes=True)


class AuthorDetail(Author):
    books: List[BookForAuthor] = []
