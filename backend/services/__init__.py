from .clip_pipeline import ClipPipeline
from .metadata_cache import MetadataCache
from .process_runner import ProcessRunner
from .store import sessions

__all__ = ["ClipPipeline", "MetadataCache", "ProcessRunner", "sessions"]
