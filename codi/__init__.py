"""Codi - ask questions about a codebase and merge model-proposed edits.

Pipeline:
- Virtual File Tree: in-memory mirror of an opened folder
- Knowledge: chunking, embedding, namespace-partitioned vector store, retrieval
- Editing: parsing ###edit blocks out of model answers and applying them

Usage:
    from codi.assistant import CodeAssistant
    from codi.config import get_config
    from codi.session import AssistantSession

    assistant = CodeAssistant.from_config(get_config())
    session = await AssistantSession.open_folder(assistant, "./acme-widgets")
    await session.index()
    reply = await session.ask("Where is the login handler?")
"""

__version__ = "0.1.0"
