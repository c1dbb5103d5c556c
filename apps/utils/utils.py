from django.utils import timezone


def now():
    return timezone.now()


def epoch_millis(dt=None):
    dt = dt or now()
    return int(dt.timestamp() * 1000)


def format_idr(amount) -> str:
    """
    Rupiah formatting used in receipts: 'Rp 20.000'.
    """
    return "Rp " + f"{int(amount):,}".replace(",", ".")
