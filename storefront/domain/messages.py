from decimal import Decimal

# --- WhatsApp hand-off (customer -> store admin) ---
ORDER_MESSAGE = """Halo {store_name}, saya mau pesan:

{order_details}
{promo_block}*Total: {total}*

No. Pesanan: {order_number}
Tanggal: {placed_at}
Nama: {name}
No. HP: {phone}
Email: {email}

Terima kasih 🙏"""

PROMO_BLOCK = """
Subtotal: {subtotal}
Kode Promo ({code}): -{discount}
"""

ORDER_LINE = "{name} x{quantity} = {subtotal}"

# --- Admin notification (Twilio) ---
ADMIN_NOTIFICATION = """🔔 *PESANAN BARU*

🧾 {order_number}
👤 {name} ({phone})
🛒 Pesanan:
{order_details}

💰 Total: {total}"""

# --- Promo validation ---
PROMO_APPLIED = "Kode promo berhasil digunakan"
PROMO_NOT_FOUND = "Kode promo tidak ditemukan"
PROMO_INACTIVE = "Kode promo tidak aktif"
PROMO_NOT_STARTED = "Kode promo belum berlaku"
PROMO_EXPIRED = "Kode promo sudah kedaluwarsa"
PROMO_EXHAUSTED = "Kuota kode promo sudah habis"
PROMO_MIN_PURCHASE = "Minimal belanja {min_purchase} untuk kode promo ini"
PROMO_MISSING_FIELDS = "Kode promo dan total belanja harus diisi"


def format_price(amount: Decimal) -> str:
    """Rupiah with dot thousands separators, e.g. Rp 100.000 (sen are dropped)."""
    whole = int(Decimal(amount).quantize(Decimal("1")))
    sign = "-" if whole < 0 else ""
    return f"{sign}Rp {abs(whole):,}".replace(",", ".")
