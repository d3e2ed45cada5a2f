"""
PDF processing service for extracting and chunking document text.
"""

import PyPDF2
from io import BytesIO
from typing import List
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..config import settings
from ..exceptions import InvalidUpload
from ..utils import (
    measure_time,
    create_passage_metadata,
    clean_text,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)


class ExtractedPDF:
    """Pages of text pulled out of one PDF."""

    def __init__(self, pages: List[Document], page_count: int):
        self.pages = pages
        self.page_count = page_count


class PDFProcessor:
    """Service for processing PDF files and extracting text."""

    def __init__(self):
        """Initialize the PDF processor."""
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap
        )

    @measure_time
    def extract_text(self, file_content: bytes, filename: str, document_id: str) -> ExtractedPDF:
        """
        Extract text from PDF file content.

        Args:
            file_content: PDF file content as bytes
            filename: Name of the PDF file
            document_id: Document the pages belong to

        Returns:
            ExtractedPDF with one Document per non-empty page and the total page count
        """
        try:
            pdf_reader = PyPDF2.PdfReader(BytesIO(file_content))
            total_pages = len(pdf_reader.pages)
        except Exception as e:
            handle_processing_error("pdf_open", e, {"filename": filename, "file_size": len(file_content)})
            raise InvalidUpload(f"Could not read PDF {filename}") from e

        log_processing_info("PDF extraction started", {
            "filename": filename,
            "total_pages": total_pages,
            "file_size": len(file_content)
        })

        pages = []
        for page_num, page in enumerate(pdf_reader.pages):
            try:
                cleaned_text = clean_text(page.extract_text() or "")
            except Exception as page_error:
                error_info = handle_processing_error(
                    "page_extraction",
                    page_error,
                    {"filename": filename, "page": page_num + 1}
                )
                logger.warning(f"Skipping page {page_num + 1}: {error_info}")
                continue

            if cleaned_text:
                pages.append(Document(
                    page_content=cleaned_text,
                    metadata=create_passage_metadata(
                        document_id=document_id,
                        filename=filename,
                        page_num=page_num + 1,
                        total_pages=total_pages
                    )
                ))

        log_processing_info("PDF extraction completed", {
            "filename": filename,
            "pages_with_text": len(pages),
            "total_pages": total_pages
        })

        return ExtractedPDF(pages=pages, page_count=total_pages)

    def split_into_passages(self, pages: List[Document]) -> List[Document]:
        """
        Split pages into passages for vector indexing.

        Args:
            pages: List of page Documents

        Returns:
            List of chunked Document objects
        """
        chunks = self.text_splitter.split_documents(pages)

        for i, chunk in enumerate(chunks):
            chunk.metadata.update({
                'chunk_index': i,
                'total_chunks': len(chunks)
            })

        log_processing_info("Document chunking completed", {
            "pages": len(pages),
            "chunks_created": len(chunks)
        })

        return chunks
