import os
import shutil
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from print_pricing.config.settings import Settings, get_package_data_dir
from print_pricing.engine import PricingEngine
from print_pricing.services.catalog_service import CatalogService


@pytest.fixture
def reference_dir(tmp_path):
    """A private copy of the shipped reference tables."""
    target = tmp_path / "reference"
    shutil.copytree(get_package_data_dir(), target)
    return target


@pytest.fixture
def settings(reference_dir):
    return Settings.load(data_dir=reference_dir)


@pytest.fixture(scope="function")
def engine(settings):
    return PricingEngine.from_settings(settings)


@pytest.fixture
def catalog(engine):
    return CatalogService(engine.store, engine.cache)
