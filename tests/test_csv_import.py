import pytest

from dermo_admin.errors import RepositoryError
from dermo_admin.models import ProductStatus
from dermo_admin.services.csv_import_service import CsvImportService, map_header


@pytest.fixture
def service(backend):
    return CsvImportService(backend.products)


CSV_TEXT = (
    "Nombre,Precio,Precio_Oferta,Categoría,Marca,Stock,Controlar_Stock,Imagenes\n"
    "Gel Limpiador,80,60,Cuidado Facial;Limpiadores,CeraVe,10,si,https://a.jpg|https://b.jpg\n"
    "\n"
    "Protector Solar,120,,Protección Solar,La Roche-Posay,,,\n"
    ",,,,,,,\n"
)


def test_header_aliases_ignore_case_and_accents():
    mapping = map_header('NOMBRE, price ,Categoría,desconocida,Estado')
    assert mapping == {0: 'name', 1: 'price', 2: 'categories', 4: 'status'}


def test_each_non_empty_row_creates_one_product(service, backend):
    result = service.import_products(CSV_TEXT)
    assert result.created == 3
    assert result.failed == 0
    assert len(backend.products) == 6


def test_imported_values_and_defaults(service):
    gel, solar, unnamed = service.parse(CSV_TEXT)

    assert gel.name == 'Gel Limpiador'
    assert gel.price == 80.0
    assert gel.sale_price == 60.0
    assert gel.categories == ['Cuidado Facial', 'Limpiadores']
    assert gel.images == ['https://a.jpg', 'https://b.jpg']
    assert gel.track_stock is True
    assert gel.stock == 10

    assert solar.sale_price is None
    assert solar.stock == 0
    assert solar.track_stock is False

    assert unnamed.name == 'Producto sin nombre'
    assert unnamed.price == 0.0
    for product in (gel, solar, unnamed):
        assert product.status == ProductStatus.ACTIVO


def test_empty_text_imports_nothing(service):
    assert service.import_products('').created == 0
    assert service.import_products('nombre,precio\n').created == 0


def test_failed_rows_are_counted(backend):
    class FailingRepo:
        def __init__(self):
            self.calls = 0

        def create(self, product):
            self.calls += 1
            if self.calls == 2:
                raise RepositoryError('timeout')
            return product

    result = CsvImportService(FailingRepo()).import_products(CSV_TEXT)
    assert result.created == 2
    assert result.failed == 1
    assert result.errors == ['Fila 3: timeout']


@pytest.mark.parametrize('value', ['nan', 'inf', '-inf', '1e999'])
def test_non_finite_numbers_fall_back_to_defaults(service, value):
    text = f"nombre,precio,precio_oferta,stock\nCrema,{value},{value},{value}\n"
    result = service.import_products(text)
    assert result.created == 1
    assert result.failed == 0

    product = service.parse(text)[0]
    assert product.price == 0.0
    assert product.sale_price is None
    assert product.stock == 0
