"""
Storage layer.
Record stores, their persistence areas and codecs, change notification and
the store registry.
"""
from .codecs import Codec, JsonCodec, ZlibCodec, get_codec
from .notifications import ChangeAction
from .persistence import (
    PersistenceArea,
    MemoryArea,
    DirectoryArea,
    SQLiteArea,
    StorePersistence,
    build_area,
)
from .record_store import RecordStore, StoreOptions, generate_id
from .registry import StoreRegistry, RelationGuard
from .snapshots import ImportReport
from .validation import (
    Validator,
    RequiredFields,
    PatternRule,
    ChoiceRule,
    DateOrderRule,
    RangeRule,
    AllOf,
    FunctionValidator,
)

__all__ = [
    'Codec',
    'JsonCodec',
    'ZlibCodec',
    'get_codec',
    'ChangeAction',
    'PersistenceArea',
    'MemoryArea',
    'DirectoryArea',
    'SQLiteArea',
    'StorePersistence',
    'build_area',
    'RecordStore',
    'StoreOptions',
    'generate_id',
    'StoreRegistry',
    'RelationGuard',
    'ImportReport',
    'Validator',
    'RequiredFields',
    'PatternRule',
    'ChoiceRule',
    'DateOrderRule',
    'RangeRule',
    'AllOf',
    'FunctionValidator',
]
