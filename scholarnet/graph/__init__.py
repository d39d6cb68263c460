from .builder import GraphBuilder, resolve_work_id
from .algorithms import GraphAlgorithms
from .export import GraphExporter
