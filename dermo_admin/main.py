# ==============================================================================
# APLICACIÓN FLASK - Rutas del panel administrativo
# ==============================================================================
# create_app() arma la aplicación: configuración, logging, backend
# (Supabase o memoria), AppState y rutas.
#
# Las rutas son delgadas: leen el formulario, llaman a AppState y
# convierten los errores del dominio en mensajes flash.
# ==============================================================================

import logging
import uuid
from functools import wraps

from flask import (
    Blueprint,
    Flask,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from dermo_admin.app_container import CATALOG_KINDS, AppState
from dermo_admin.config import Config
from dermo_admin.errors import DermoAdminError, NotFoundError, RepositoryError
from dermo_admin.models import ProductStatus
from dermo_admin.repositories import build_backend
from dermo_admin.request_logger import configure_logging, init_request_logging
from dermo_admin.services import KIND_LABELS, ProductService, OrderService, paginate
from dermo_admin.services.product_service import BULK_FIELDS
from dermo_admin.services.order_service import available_stock
from dermo_admin.services.settings_service import COOKIE_MAX_AGE


logger = logging.getLogger(__name__)

admin = Blueprint('admin', __name__)

EXTENSION_KEY = 'dermo_admin'

PRODUCT_TEXT_FIELDS = ('name', 'price', 'sale_price', 'brand', 'label', 'carousel_state',
                       'short_description', 'long_description', 'usage', 'ingredients',
                       'stock', 'status')


def get_state() -> AppState:
    return current_app.extensions[EXTENSION_KEY]


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(config: Config = None, backend=None) -> Flask:
    """
    Crea la aplicación.

    Args:
        config: Configuración (por defecto, desde variables de entorno)
        backend: Backend ya construido (por defecto, build_backend(config))
    """
    config = config or Config.from_env()
    configure_logging(config.log_level, config.log_dir)

    app = Flask(__name__)
    app.config.update(config.flask_settings())

    state = AppState(backend or build_backend(config), config)
    try:
        state.load()
    except RepositoryError:
        # Se reintenta en la primera petición
        logger.exception("No se pudieron cargar los datos iniciales")
    app.extensions[EXTENSION_KEY] = state

    init_request_logging(app)
    app.register_blueprint(admin)
    app.register_error_handler(404, page_not_found)
    app.after_request(set_security_headers)
    app.context_processor(inject_template_globals)
    return app


def page_not_found(error):
    return render_template('404.html'), 404


def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN Y CSRF
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user' not in session:
            flash("Debes iniciar sesión.", "warning")
            return redirect(url_for('admin.login'))
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def inject_template_globals():
    state = current_app.extensions[EXTENSION_KEY]
    return {
        'csrf_token': generate_csrf_token(),
        'preferences': state.settings_service.read_preferences(request.cookies),
        'current_user': session.get('user'),
    }


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method == 'POST':
            token = session.get('csrf_token')
            form_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')
            )
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                if request.path.startswith('/api/'):
                    return {"ok": False, "error": "CSRF token inválido"}, 403
                flash('Sesión expirada. Por favor intenta de nuevo.', 'warning')
                if 'user' not in session:
                    return redirect(url_for('admin.login'))
                return redirect(url_for('admin.products'))
        return f(*args, **kwargs)
    return wrapper


@admin.before_app_request
def _ensure_data_loaded():
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None or state.loaded or 'user' not in session:
        return
    try:
        state.load()
    except RepositoryError as exc:
        logger.error("Carga de datos fallida: %s", exc)
        flash(f"No se pudieron cargar los datos: {exc}", "danger")


def report_error(exc: DermoAdminError, action: str) -> None:
    """Registra un error del dominio y lo muestra como mensaje flash."""
    if isinstance(exc, RepositoryError):
        logger.error("%s: %s", action, exc)
    else:
        logger.warning("%s: %s", action, exc)
    flash(str(exc), "danger" if isinstance(exc, RepositoryError) else "warning")


def _page_arg() -> int:
    return request.args.get('page', 1, type=int) or 1


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

@admin.route('/login', methods=['GET', 'POST'])
@verify_csrf
def login():
    if request.method == 'POST':
        email = request.form.get('email') or ''
        password = request.form.get('password') or ''
        try:
            user = get_state().auth_service.login(email, password)
        except DermoAdminError as exc:
            report_error(exc, "Inicio de sesión")
            return redirect(url_for('admin.login'))
        session.permanent = True
        session['user'] = user
        flash("Bienvenido.", "success")
        return redirect(url_for('admin.products'))

    if 'user' in session:
        return redirect(url_for('admin.products'))
    return render_template('login.html')


@admin.route('/logout')
@login_required
def logout():
    user = session.get('user')
    try:
        get_state().auth_service.logout(user)
    except DermoAdminError as exc:
        logger.warning("Cierre de sesión remoto fallido: %s", exc)
    session.clear()
    flash("Sesión cerrada.", "info")
    return redirect(url_for('admin.login'))


@admin.route('/')
@login_required
def index():
    return redirect(url_for('admin.products'))


# ═══════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════

def _product_form_data():
    data = {key: request.form.get(key, '') for key in PRODUCT_TEXT_FIELDS if key in request.form}
    data['categories'] = request.form.getlist('categories')
    data['subcategories'] = request.form.getlist('subcategories')
    data['track_stock'] = 'track_stock' in request.form
    return data


@admin.route('/products')
@login_required
def products():
    state = get_state()
    prefs = state.settings_service.read_preferences(request.cookies)
    filters = {
        'query': request.args.get('q', ''),
        'category': request.args.get('category', ''),
        'brand': request.args.get('brand', ''),
        'status': request.args.get('status', ''),
        'label': request.args.get('label', ''),
    }
    sort_key = request.args.get('sort', 'newest')
    filtered = ProductService.filter_products(
        state.products, hide_out_of_stock=prefs.hide_out_of_stock, **filters
    )
    page = paginate(ProductService.sort_products(filtered, sort_key), _page_arg(),
                    state.config.products_per_page)
    return render_template(
        'products.html',
        page=page,
        filters=filters,
        sort=sort_key,
        statuses=list(ProductStatus),
        catalogs=state.catalogs,
        bulk_fields=sorted(BULK_FIELDS),
    )


@admin.route('/products/new', methods=['GET', 'POST'])
@login_required
@verify_csrf
def new_product():
    state = get_state()
    if request.method == 'POST':
        try:
            product = state.create_product(_product_form_data())
        except DermoAdminError as exc:
            report_error(exc, "Crear producto")
            return render_template('product_form.html', product=None, form=request.form,
                                   catalogs=state.catalogs, statuses=list(ProductStatus)), 400
        flash(f"Producto {product.name} creado.", "success")
        return redirect(url_for('admin.edit_product', product_id=product.id))
    return render_template('product_form.html', product=None, form={},
                           catalogs=state.catalogs, statuses=list(ProductStatus))


@admin.route('/products/<product_id>/edit', methods=['GET', 'POST'])
@login_required
@verify_csrf
def edit_product(product_id):
    state = get_state()
    product = state.find_product(product_id)
    if product is None:
        flash("Producto no encontrado.", "warning")
        return redirect(url_for('admin.products'))

    if request.method == 'POST':
        try:
            product = state.update_product(product_id, _product_form_data())
        except DermoAdminError as exc:
            report_error(exc, "Editar producto")
            return render_template('product_form.html', product=product, form=request.form,
                                   catalogs=state.catalogs, statuses=list(ProductStatus)), 400
        flash("Producto actualizado.", "success")
        return redirect(url_for('admin.products'))
    return render_template('product_form.html', product=product, form={},
                           catalogs=state.catalogs, statuses=list(ProductStatus))


@admin.route('/products/<product_id>/duplicate', methods=['POST'])
@login_required
@verify_csrf
def duplicate_product(product_id):
    try:
        copy = get_state().duplicate_product(product_id)
        flash(f"Producto duplicado como {copy.name}.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Duplicar producto")
    return redirect(url_for('admin.products'))


@admin.route('/products/<product_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_product(product_id):
    try:
        get_state().delete_product(product_id)
        flash("Producto eliminado.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Eliminar producto")
    return redirect(url_for('admin.products'))


@admin.route('/products/bulk-update', methods=['POST'])
@login_required
@verify_csrf
def bulk_update_products():
    product_ids = request.form.getlist('product_ids')
    updates = {}
    for key in BULK_FIELDS:
        if key in ('categories', 'subcategories'):
            values = request.form.getlist(key)
            if values:
                updates[key] = values
        elif request.form.get(key, '') != '':
            updates[key] = request.form[key]

    if not product_ids:
        flash("Seleccione al menos un producto.", "warning")
        return redirect(url_for('admin.products'))
    try:
        result = get_state().bulk_update_products(product_ids, updates)
    except DermoAdminError as exc:
        report_error(exc, "Edición múltiple")
        return redirect(url_for('admin.products'))

    if result.failed:
        flash(f"{result.succeeded} productos actualizados, {result.failed} con error.", "warning")
    else:
        flash(f"{result.succeeded} productos actualizados.", "success")
    return redirect(url_for('admin.products'))


@admin.route('/products/delete-all', methods=['POST'])
@login_required
@verify_csrf
def delete_all_products():
    if request.form.get('confirm') != 'ELIMINAR':
        flash("Escriba ELIMINAR para confirmar.", "warning")
        return redirect(url_for('admin.products'))
    try:
        result = get_state().delete_all_products()
    except DermoAdminError as exc:
        report_error(exc, "Borrado total")
        return redirect(url_for('admin.products'))
    category = "warning" if result.failed else "success"
    flash(f"{result.succeeded} productos eliminados, {result.failed} con error.", category)
    return redirect(url_for('admin.products'))


@admin.route('/products/import', methods=['POST'])
@login_required
@verify_csrf
def import_products():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        flash("Seleccione un archivo CSV.", "warning")
        return redirect(url_for('admin.products'))
    try:
        text = upload.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        flash("El archivo debe estar codificado en UTF-8.", "warning")
        return redirect(url_for('admin.products'))

    try:
        result = get_state().import_products(text)
    except DermoAdminError as exc:
        report_error(exc, "Importación CSV")
        return redirect(url_for('admin.products'))
    if result.failed:
        flash(f"{result.created} productos importados, {result.failed} con error.", "warning")
    else:
        flash(f"{result.created} productos importados.", "success")
    return redirect(url_for('admin.products'))


@admin.route('/products/<product_id>/images', methods=['POST'])
@login_required
@verify_csrf
def upload_product_image(product_id):
    upload = request.files.get('image')
    if upload is None or not upload.filename:
        flash("Seleccione una imagen.", "warning")
        return redirect(url_for('admin.edit_product', product_id=product_id))
    try:
        get_state().add_product_image(product_id, upload.filename, upload.read(), upload.mimetype)
        flash("Imagen subida.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Subir imagen")
    return redirect(url_for('admin.edit_product', product_id=product_id))


@admin.route('/products/<product_id>/images/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_product_image(product_id):
    url = request.form.get('url', '')
    try:
        get_state().remove_product_image(product_id, url)
        flash("Imagen eliminada.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Eliminar imagen")
    return redirect(url_for('admin.edit_product', product_id=product_id))


@admin.route('/api/products/<product_id>/available-stock')
@login_required
def api_available_stock(product_id):
    state = get_state()
    order_id = request.args.get('order_id') or None
    try:
        available = state.order_service.available_stock_for(product_id, order_id)
    except NotFoundError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 404
    except DermoAdminError as exc:
        logger.error("Stock disponible de %s: %s", product_id, exc)
        return jsonify({"ok": False, "error": str(exc)}), 502
    return jsonify({
        "ok": True,
        "product_id": product_id,
        "available": available,
        "unlimited": available is None,
    })


# ═══════════════════════════════════════════════════════════════════════════
# PEDIDOS
# ═══════════════════════════════════════════════════════════════════════════

def _order_form_items():
    product_ids = request.form.getlist('product_id')
    quantities = request.form.getlist('quantity')
    return [
        {'product_id': pid, 'quantity': qty}
        for pid, qty in zip(product_ids, quantities)
        if pid and qty.strip() not in ('', '0')
    ]


def _order_form_customer():
    return {key: request.form.get(key, '') for key in
            ('customer_name', 'customer_phone', 'customer_email', 'customer_address',
             'notes', 'payment_method')
            if key in request.form}


def _render_order_form(order=None, status=200):
    state = get_state()
    stock = {p.id: available_stock(p, order) for p in state.products}
    return render_template(
        'order_form.html',
        order=order,
        products=state.products,
        available=stock,
        statuses=state.catalogs['order_statuses'],
        form=request.form if request.method == 'POST' else {},
    ), status


@admin.route('/orders')
@login_required
def orders():
    state = get_state()
    filters = {'query': request.args.get('q', ''), 'status': request.args.get('status', '')}
    sort_key = request.args.get('sort', 'newest')
    filtered = OrderService.filter_orders(state.orders, **filters)
    page = paginate(OrderService.sort_orders(filtered, sort_key), _page_arg(),
                    state.config.orders_per_page)
    return render_template('orders.html', page=page, filters=filters, sort=sort_key,
                           statuses=state.catalogs['order_statuses'])


@admin.route('/orders/new', methods=['GET', 'POST'])
@login_required
@verify_csrf
def new_order():
    if request.method == 'POST':
        try:
            order = get_state().create_order(
                _order_form_items(),
                status_name=request.form.get('status') or None,
                discount=request.form.get('discount', 0),
                **_order_form_customer(),
            )
        except DermoAdminError as exc:
            report_error(exc, "Crear pedido")
            return _render_order_form(status=400)
        flash(f"Pedido {order.order_number} creado.", "success")
        return redirect(url_for('admin.orders'))
    return _render_order_form()


@admin.route('/orders/<order_id>/edit', methods=['GET', 'POST'])
@login_required
@verify_csrf
def edit_order(order_id):
    state = get_state()
    try:
        original = state.order_service.get_order(order_id)
    except DermoAdminError as exc:
        report_error(exc, "Editar pedido")
        return redirect(url_for('admin.orders'))

    if request.method == 'POST':
        try:
            order = state.update_order(
                order_id,
                _order_form_items(),
                status_name=request.form.get('status') or None,
                discount=request.form.get('discount', 0),
                **_order_form_customer(),
            )
        except DermoAdminError as exc:
            report_error(exc, "Editar pedido")
            return _render_order_form(original, status=400)
        flash(f"Pedido {order.order_number} actualizado.", "success")
        return redirect(url_for('admin.orders'))
    return _render_order_form(original)


@admin.route('/orders/<order_id>/status', methods=['POST'])
@login_required
@verify_csrf
def update_order_status(order_id):
    try:
        order = get_state().update_order_status(order_id, request.form.get('status', ''))
        flash(f"Pedido {order.order_number}: {order.status}.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Cambiar estado")
    return redirect(url_for('admin.orders'))


@admin.route('/orders/<order_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_order(order_id):
    try:
        get_state().delete_order(order_id)
        flash("Pedido eliminado.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Eliminar pedido")
    return redirect(url_for('admin.orders'))


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

@admin.route('/settings')
@login_required
def settings():
    state = get_state()
    try:
        store_settings = state.settings_service.get_store_settings()
    except DermoAdminError as exc:
        report_error(exc, "Leer ajustes")
        store_settings = None
    return render_template('settings.html', catalogs=state.catalogs, kinds=CATALOG_KINDS,
                           kind_labels=KIND_LABELS, store_settings=store_settings)


@admin.route('/settings/<kind>', methods=['POST'])
@login_required
@verify_csrf
def create_catalog_item(kind):
    try:
        item = get_state().create_catalog_item(kind, request.form.to_dict())
        flash(f"{KIND_LABELS.get(kind, kind)} \"{item.name}\" creada.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Crear elemento")
    return redirect(url_for('admin.settings'))


@admin.route('/settings/<kind>/<item_id>/rename', methods=['POST'])
@login_required
@verify_csrf
def rename_catalog_item(kind, item_id):
    try:
        get_state().rename_catalog_item(kind, item_id, request.form.get('name', ''))
        flash("Nombre actualizado.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Renombrar elemento")
    return redirect(url_for('admin.settings'))


@admin.route('/settings/<kind>/<item_id>/delete', methods=['POST'])
@login_required
@verify_csrf
def delete_catalog_item(kind, item_id):
    try:
        get_state().delete_catalog_item(kind, item_id)
        flash("Elemento eliminado.", "success")
    except DermoAdminError as exc:
        report_error(exc, "Eliminar elemento")
    return redirect(url_for('admin.settings'))


def _preference_response(prefs):
    response = redirect(request.referrer or url_for('admin.settings'))
    for name, value in prefs.cookies().items():
        response.set_cookie(name, value, max_age=COOKIE_MAX_AGE, samesite='Lax')
    return response


@admin.route('/settings/toggle-dark-mode', methods=['POST'])
@login_required
@verify_csrf
def toggle_dark_mode():
    prefs = get_state().settings_service.toggle_dark_mode(request.cookies)
    return _preference_response(prefs)


@admin.route('/settings/toggle-hide-out-of-stock', methods=['POST'])
@login_required
@verify_csrf
def toggle_hide_out_of_stock():
    try:
        prefs = get_state().settings_service.toggle_hide_out_of_stock(request.cookies)
    except DermoAdminError as exc:
        report_error(exc, "Ocultar agotados")
        return redirect(url_for('admin.settings'))
    return _preference_response(prefs)
