"""Repository routes: indexing, querying and namespace management."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import AliasChoices, BaseModel, Field

from codi.assistant import CodeAssistant, make_namespace
from codi.errors import NamespaceNotFoundError
from codi.knowledge.chunker import SourceFile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/repo", tags=["repositories"])


class FileInput(BaseModel):
    """One file of a repository upload."""

    name: str
    path: str = ""
    content: str = ""
    language: str | None = None

    def to_source(self) -> SourceFile:
        return SourceFile(
            filename=self.name,
            path=self.path or self.name,
            text=self.content,
            language=self.language or None,
        )


class ProcessRequest(BaseModel):
    files: list[FileInput] = Field(default_factory=list)
    owner: str = Field("", validation_alias=AliasChoices("owner", "username"))
    repository: str = Field("", validation_alias=AliasChoices("repository", "repoName"))


class QueryRequest(BaseModel):
    query: str = ""
    owner: str = Field("", validation_alias=AliasChoices("owner", "username"))
    repository: str = Field("", validation_alias=AliasChoices("repository", "repoName"))
    current_filename: str | None = Field(
        None,
        validation_alias=AliasChoices("currentFilename", "current_filename"),
    )


def get_assistant(request: Request) -> CodeAssistant:
    return request.app.state.assistant


@router.post("/process")
async def process_repository(body: ProcessRequest, request: Request) -> dict[str, Any]:
    """Chunk and index uploaded files."""
    assistant = get_assistant(request)
    result = await assistant.process_repository(
        [f.to_source() for f in body.files],
        body.owner,
        body.repository,
    )
    return {
        "success": True,
        "chunkCount": result.chunk_count,
        "namespace": result.namespace,
    }


@router.post("/query")
async def query_repository(body: QueryRequest, request: Request) -> dict[str, Any]:
    """Answer a question from an indexed repository."""
    assistant = get_assistant(request)
    result = await assistant.query_repository(
        body.query,
        body.owner,
        body.repository,
        current_file=body.current_filename or None,
    )
    return result.to_dict()


@router.delete("/{owner}/{repository}")
async def delete_repository(owner: str, repository: str, request: Request) -> dict[str, Any]:
    """Drop everything indexed for a repository."""
    namespace = make_namespace(owner, repository)
    if not await get_assistant(request).delete_repository(owner, repository):
        raise NamespaceNotFoundError(namespace)
    return {"success": True, "namespace": namespace}


@router.get("/{owner}")
async def list_repositories(owner: str, request: Request) -> dict[str, Any]:
    """List the repositories indexed for an owner."""
    repositories = await get_assistant(request).list_repositories(owner)
    return {
        "success": True,
        "repositories": repositories,
        "totalNamespaces": len(repositories),
    }
