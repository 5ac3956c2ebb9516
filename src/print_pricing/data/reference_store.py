"""
Reference Store - CSV-backed reference tables for the pricing engine.

Each table is loaded into a pandas DataFrame of strings and parsed into
frozen dataclasses when a snapshot is taken. Admin writes update the frames
and, when persistence is enabled, write them back to disk.
"""
import logging
import threading
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from ..engine.models import (
    BindingType,
    LaminationRate,
    MarkupSetting,
    PaperRate,
    PricingStrategy,
    PrintPriceSheet,
    PrintPriceTier,
    PrintTypeRate,
    Product,
    ProductOperationLink,
    QuantityDiscountTier,
    Service,
    ServiceVariant,
    VolumeTier,
)
from ..rules.pricing_rules import parse_bool, parse_json_object, parse_rule
from ..engine.snapshot import ReferenceSnapshot

logger = logging.getLogger(__name__)

TABLE_COLUMNS: dict[str, list[str]] = {
    'services': ['id', 'name', 'service_type', 'unit', 'price_unit', 'rate',
                 'setup_cost', 'operator_percent', 'is_active'],
    'service_variants': ['id', 'service_id', 'variant_name', 'is_active'],
    'volume_tiers': ['id', 'service_id', 'variant_id', 'min_quantity', 'rate',
                     'is_percent', 'is_active'],
    'pricing_rules': ['id', 'service_id', 'rule_name', 'rule_type', 'conditions',
                      'pricing_data', 'is_active'],
    'binding_types': ['value', 'label', 'min_pages', 'max_pages', 'duplex_default',
                      'unit_price', 'service_id', 'is_active'],
    'print_prices': ['id', 'technology_code', 'counter_unit', 'sheet_width_mm',
                     'sheet_height_mm', 'is_active'],
    'print_price_tiers': ['id', 'print_price_id', 'price_mode', 'min_sheets',
                          'max_sheets', 'price_per_sheet'],
    'products': ['key', 'name', 'category', 'is_active'],
    'product_operations': ['product_key', 'service_id', 'sequence', 'is_required',
                           'is_default', 'price_multiplier', 'default_params', 'conditions'],
    'quantity_discounts': ['id', 'min_quantity', 'max_quantity', 'discount_percent', 'is_active'],
    'markup_settings': ['id', 'setting_name', 'setting_value', 'description', 'is_active'],
    'print_types': ['code', 'label', 'rate_per_sheet', 'setup_cost'],
    'paper_types': ['paper_type', 'label', 'density', 'price_per_sheet'],
    'lamination_types': ['code', 'label', 'rate'],
}


# Cell parsers ---------------------------------------------------------------

def _blank(value: Any) -> bool:
    return value is None or str(value).strip() in ('', 'nan', 'None')


def _int(value: Any, default: int = 0) -> int:
    return default if _blank(value) else int(float(value))


def _opt_int(value: Any) -> Optional[int]:
    return None if _blank(value) else int(float(value))


def _float(value: Any, default: float = 0.0) -> float:
    return default if _blank(value) else float(value)


def _opt_float(value: Any) -> Optional[float]:
    return None if _blank(value) else float(value)


def _str(value: Any, default: str = '') -> str:
    return default if _blank(value) else str(value).strip()


def _bool(value: Any, default: bool = True) -> bool:
    return default if _blank(value) else parse_bool(value)


def _cell(value: Any) -> str:
    """Format a Python value for a string-typed frame."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


# Row → model ----------------------------------------------------------------

def service_from_row(row: dict) -> Service:
    service_type = _str(row.get('service_type'), 'generic')
    return Service(
        id=_int(row['id']),
        name=_str(row.get('name')),
        service_type=service_type,
        unit=_str(row.get('unit'), 'pcs'),
        rate=_float(row.get('rate')),
        is_active=_bool(row.get('is_active')),
        operator_percent=_opt_float(row.get('operator_percent')),
        setup_cost=_float(row.get('setup_cost')),
        strategy=PricingStrategy.from_legacy(service_type, _str(row.get('price_unit'))),
    )


def tier_from_row(row: dict) -> VolumeTier:
    return VolumeTier(
        id=_int(row['id']),
        service_id=_int(row['service_id']),
        variant_id=_opt_int(row.get('variant_id')),
        min_quantity=_int(row['min_quantity']),
        rate=_float(row.get('rate')),
        is_percent=_bool(row.get('is_percent'), False),
        is_active=_bool(row.get('is_active')),
    )


class CsvReferenceStore:
    """
    Reference tables backed by CSV files in one directory.

    Missing files are treated as empty tables.
    """

    def __init__(self, data_dir: Path, persist: bool = False):
        self.data_dir = Path(data_dir)
        self.persist = persist
        self._lock = threading.RLock()
        self._frames: dict[str, pd.DataFrame] = {
            name: self._load_csv(name) for name in TABLE_COLUMNS
        }

    def _load_csv(self, table: str) -> pd.DataFrame:
        columns = TABLE_COLUMNS[table]
        path = self.data_dir / f"{table}.csv"
        if not path.exists():
            logger.info("Reference table %s not found at %s; using empty table", table, path)
            return pd.DataFrame(columns=columns, dtype=str)

        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        # Strip all strings and headers
        df.columns = [c.strip() for c in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        for col in columns:
            if col not in df.columns:
                df[col] = ''
        return df[columns]

    def _save(self, table: str) -> None:
        if not self.persist:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._frames[table].to_csv(self.data_dir / f"{table}.csv", index=False)

    def rows(self, table: str) -> list[dict]:
        """Raw rows of a table as dicts of strings."""
        with self._lock:
            return self._frames[table].to_dict(orient='records')

    # Snapshot ---------------------------------------------------------------

    def load_snapshot(self) -> ReferenceSnapshot:
        """Parse every table into an immutable snapshot."""
        with self._lock:
            print_price_tiers: dict[int, list[PrintPriceTier]] = {}
            for row in self.rows('print_price_tiers'):
                print_price_tiers.setdefault(_int(row['print_price_id']), []).append(PrintPriceTier(
                    price_mode=_str(row.get('price_mode')),
                    min_sheets=_int(row.get('min_sheets'), 1),
                    max_sheets=_opt_int(row.get('max_sheets')),
                    price_per_sheet=_float(row.get('price_per_sheet')),
                ))

            return ReferenceSnapshot(
                services=tuple(service_from_row(r) for r in self.rows('services')),
                variants=tuple(
                    ServiceVariant(
                        id=_int(r['id']),
                        service_id=_int(r['service_id']),
                        name=_str(r.get('variant_name')),
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('service_variants')
                ),
                tiers=tuple(tier_from_row(r) for r in self.rows('volume_tiers')),
                rules=tuple(parse_rule(r) for r in self.rows('pricing_rules')),
                binding_types=tuple(
                    BindingType(
                        value=_str(r['value']),
                        label=_str(r.get('label'), _str(r['value'])),
                        unit_price=_float(r.get('unit_price')),
                        min_pages=_opt_int(r.get('min_pages')),
                        max_pages=_opt_int(r.get('max_pages')),
                        duplex_default=_bool(r.get('duplex_default'), False),
                        service_id=_opt_int(r.get('service_id')),
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('binding_types')
                ),
                print_prices=tuple(
                    PrintPriceSheet(
                        id=_int(r['id']),
                        technology_code=_str(r['technology_code']),
                        counter_unit=_str(r.get('counter_unit'), 'sheets'),
                        sheet_width_mm=_float(r.get('sheet_width_mm'), 320.0),
                        sheet_height_mm=_float(r.get('sheet_height_mm'), 450.0),
                        tiers=tuple(print_price_tiers.get(_int(r['id']), [])),
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('print_prices')
                ),
                products=tuple(
                    Product(
                        key=_str(r['key']),
                        name=_str(r.get('name'), _str(r['key'])),
                        category=_str(r.get('category'), 'printing'),
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('products')
                ),
                product_operations=tuple(
                    ProductOperationLink(
                        product_key=_str(r['product_key']),
                        service_id=_int(r['service_id']),
                        sequence=_int(r.get('sequence')),
                        is_required=_bool(r.get('is_required'), False),
                        is_default=_bool(r.get('is_default'), True),
                        price_multiplier=_float(r.get('price_multiplier'), 1.0),
                        default_params=parse_json_object(r.get('default_params')),
                        conditions=parse_json_object(r.get('conditions')),
                    )
                    for r in self.rows('product_operations')
                ),
                quantity_discounts=tuple(
                    QuantityDiscountTier(
                        id=_int(r['id']),
                        min_quantity=_int(r['min_quantity']),
                        max_quantity=_opt_int(r.get('max_quantity')),
                        discount_percent=_float(r.get('discount_percent')),
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('quantity_discounts')
                ),
                markup_settings=tuple(
                    MarkupSetting(
                        id=_int(r['id']),
                        setting_name=_str(r['setting_name']),
                        setting_value=_float(r.get('setting_value')),
                        description=_str(r.get('description')) or None,
                        is_active=_bool(r.get('is_active')),
                    )
                    for r in self.rows('markup_settings')
                ),
                print_types=tuple(
                    PrintTypeRate(
                        code=_str(r['code']),
                        label=_str(r.get('label'), _str(r['code'])),
                        rate_per_sheet=_float(r.get('rate_per_sheet')),
                        setup_cost=_float(r.get('setup_cost')),
                    )
                    for r in self.rows('print_types')
                ),
                paper_rates=tuple(
                    PaperRate(
                        paper_type=_str(r['paper_type']),
                        label=_str(r.get('label')) or None,
                        density=_opt_int(r.get('density')),
                        price_per_sheet=_float(r.get('price_per_sheet')),
                    )
                    for r in self.rows('paper_types')
                ),
                lamination_rates=tuple(
                    LaminationRate(
                        code=_str(r['code']),
                        label=_str(r.get('label')) or None,
                        rate=_float(r.get('rate')),
                    )
                    for r in self.rows('lamination_types')
                ),
            )

    # Writes -----------------------------------------------------------------

    def _next_id(self, table: str) -> int:
        ids = [_int(v) for v in self._frames[table]['id'] if not _blank(v)]
        return max(ids, default=0) + 1

    def _find_index(self, table: str, **match: Any):
        df = self._frames[table]
        mask = pd.Series(True, index=df.index)
        for col, value in match.items():
            mask &= df[col] == _cell(value)
        hits = df.index[mask]
        if len(hits) == 0:
            raise KeyError(f"{table} {match}")
        return hits[-1]

    def insert(self, table: str, values: dict) -> dict:
        """Append a row (assigning the next id when the table has one)."""
        with self._lock:
            row = {col: '' for col in TABLE_COLUMNS[table]}
            if 'id' in row and _blank(values.get('id')):
                values = {**values, 'id': self._next_id(table)}
            for key, value in values.items():
                if key in row:
                    row[key] = _cell(value)
            self._frames[table] = pd.concat(
                [self._frames[table], pd.DataFrame([row])], ignore_index=True
            )
            self._save(table)
            return row

    def update(self, table: str, match: dict, updates: dict) -> dict:
        """Update the row matching all of `match`; KeyError when absent."""
        with self._lock:
            idx = self._find_index(table, **match)
            for key, value in updates.items():
                if key in TABLE_COLUMNS[table]:
                    self._frames[table].at[idx, key] = _cell(value)
            self._save(table)
            return self._frames[table].loc[idx].to_dict()

    def deactivate(self, table: str, match: dict) -> dict:
        """Soft delete: flip is_active off instead of dropping the row."""
        return self.update(table, match, {'is_active': False})
