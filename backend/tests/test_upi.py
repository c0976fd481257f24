import asyncio
import re
from datetime import datetime, timedelta
from decimal import Decimal

from storefront.services.mirror_service import CheckoutMirror
from storefront.services.session_service import SessionService
from storefront.services.upi_service import QRPaymentPresenter, build_payment_uri, format_amount

SESSION_ID_PATTERN = re.compile(r"^sess_\d+_[0-9a-z]{9}$")


def test_session_id_format_and_timestamp():
    now = datetime(2024, 1, 1, 12, 0, 0)
    session_id = SessionService.generate_session_id(now)

    assert SESSION_ID_PATTERN.match(session_id)
    assert session_id.split("_")[1] == "1704110400000"


def test_session_ids_do_not_repeat():
    now = datetime(2024, 1, 1)
    ids = {SessionService.generate_session_id(now) for _ in range(500)}
    assert len(ids) == 500


def test_start_session_uses_countdown_window(cart, shipping):
    now = datetime(2024, 1, 1, 12, 0, 0)
    session = SessionService.start_session(Decimal("851"), cart, shipping, now=now)

    assert session.created_at == now
    assert session.expires_at == now + timedelta(seconds=120)
    assert session.cart_snapshot == cart
    assert session.shipping_form == shipping


def test_payment_uri_field_order_and_encoding():
    uri = build_payment_uri(" Shop@OkAxis ", "Kichofy", 851, "Order sess_1_abc")
    assert uri == "upi://pay?pa=shop@okaxis&pn=Kichofy&am=851.00&tn=Order%20sess_1_abc&cu=INR"


def test_amount_is_rendered_with_two_decimals():
    assert format_amount(Decimal("99.5")) == "99.50"
    assert format_amount(1) == "1.00"
    assert format_amount("10.005") == "10.01"


def _presenter(cart, shipping, **kwargs):
    session = SessionService.start_session(Decimal("851"), cart, shipping)
    return QRPaymentPresenter(session, payee_id="shop@okaxis", payee_name="Kichofy", **kwargs)


def test_payment_uri_embeds_session_id(cart, shipping):
    presenter = _presenter(cart, shipping)
    assert f"tn=Order%20{presenter.session.session_id}" in presenter.payment_uri
    assert "am=851.00" in presenter.payment_uri


def test_rotation_after_window_mints_new_session(cart, shipping):
    presenter = _presenter(cart, shipping)
    first_id = presenter.session.session_id

    rotated = [presenter.tick() for _ in range(120)]

    assert rotated[:-1] == [False] * 119
    assert rotated[-1] is True
    assert presenter.session.session_id != first_id
    assert presenter.previous_session_ids == [first_id]
    assert presenter.time_left == 120
    assert presenter.session.amount == Decimal("851")
    assert presenter.session.cart_snapshot == cart


def test_expiring_soon_flag(cart, shipping):
    presenter = _presenter(cart, shipping)
    for _ in range(89):
        presenter.tick()
    assert presenter.time_left == 31
    assert not presenter.expiring_soon

    presenter.tick()
    assert presenter.expiring_soon


def test_rotation_writes_device_mirror(cart, shipping, tmp_path):
    mirror = CheckoutMirror(directory=str(tmp_path), device_id="phone")
    presenter = _presenter(cart, shipping, mirror=mirror)
    assert mirror.load().session_id == presenter.session.session_id

    presenter.rotate()
    assert mirror.load().session_id == presenter.session.session_id


def test_qr_data_url_is_png(cart, shipping):
    presenter = _presenter(cart, shipping)
    assert presenter.qr_data_url().startswith("data:image/png;base64,")


def test_countdown_task_rotates_until_stopped(cart, shipping):
    async def scenario():
        presenter = _presenter(cart, shipping, window_seconds=2)
        presenter.start(interval=0.01)
        assert presenter.running
        await asyncio.sleep(0.2)
        presenter.stop()
        return presenter

    presenter = asyncio.run(scenario())

    assert presenter.previous_session_ids
    assert not presenter.running
