"""
PDF Chat Backend Application

Chat with uploaded PDF documents: text is extracted and embedded into a
per-document Qdrant namespace, and questions are answered by Google Gemini
using the retrieved passages plus recent conversation history.

Features:
- Retrieval-augmented chat pipeline with persisted conversation turns
- Per-document vector namespaces in Qdrant
- Plan-gated PDF ingestion
- Clerk JWT authentication
- Structured logging and error handling
"""

__version__ = "1.0.0"
__author__ = "PDF Chat Team"
__description__ = "Chat with your PDF documents"
