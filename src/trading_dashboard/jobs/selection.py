"""Stock selection for batch analysis, independent of what is displayed."""

from typing import FrozenSet, Iterable, List, Set

from .models import StockEntry


class SelectionManager:
    """Tracks which stock identifiers are chosen for the next batch job."""

    def __init__(self):
        self._selected: Set[str] = set()

    def toggle(self, identifier: str) -> bool:
        """Flip membership of identifier. Returns True if it is now selected."""
        if identifier in self._selected:
            self._selected.discard(identifier)
            return False
        self._selected.add(identifier)
        return True

    def select_all(self, visible_ids: Iterable[str]) -> None:
        """
        Select exactly the currently visible stocks.

        Hidden stocks are never pulled in; with nothing visible the current
        selection is left as it is.
        """
        visible = set(visible_ids)
        if not visible:
            return
        self._selected = visible

    def clear(self) -> None:
        self._selected.clear()

    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._selected


def filter_stocks(stocks: List[StockEntry], query: str) -> List[StockEntry]:
    """Case-insensitive search over symbol, name and yahoo_symbol."""
    query = query.strip().lower()
    if not query:
        return list(stocks)

    return [
        stock for stock in stocks
        if query in stock.symbol.lower()
        or query in stock.name.lower()
        or query in stock.yahoo_symbol.lower()
    ]
