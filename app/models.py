from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from .database import Base

# Tabla intermedia para la relación Muchos a Muchos.
# La PK compuesta impide enlazar dos veces el mismo par libro/autor.
book_authors = Table(
    "book_authors",
    Base.metadata,
    Column("book_id", Integer, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
    Column("author_id", Integer, ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True),
    Index("ix_book_authors_book_id", "book_id"),
)


class Author(Base):
    __tablename__ = "authors"

    id = Column(Integer, primary_key=True, index=True)
    # Clave natural: el find-or-create se apoya en esta restricción UNIQUE
    name = Column(String, nullable=False, unique=True)

    books = relationship("Book", secondary=book_authors, back_populates="authors")

    def __repr__(self):
        return f"<Author id={self.id} name={self.name!r}>"


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    page_count = Column(Integer, nullable=False)
    published_date = Column(DateTime(timezone=True), nullable=False)
    thumbnail_url = Column(String, nullable=False)
    short_description = Column(Text, nullable=False)
    long_description = Column(Text, nullable=False)
    status = Column(String, nullable=False)

    # Relación con autores
    authors = relationship(
        "Author",
        secondary=book_authors,
        back_populates="books",
    )

    @property
    def author_ids(self):
        return {author.id for author in self.authors}

    def __repr__(self):
        return f"<Book id={self.id} title={self.title!r}>"
