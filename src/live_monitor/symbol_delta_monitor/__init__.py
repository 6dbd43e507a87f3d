# Symbol Delta Monitor Package
# blob write {symbol, value}
#    ↓ (adapter)
# decoded SymbolEvent + blob name
#    ↓ (engine)
# delta vs last cached value, cache updated (or flushed on "0")
#    ↓ (dispatch)
# DeltaRecord → message sink, blob name → deletion endpoint
