# Simulated checkout methods; accounts are what the customer is shown to pay into.
PAYMENT_METHODS = {
    "telebirr": {"name": "TeleBirr", "account": "0911234567"},
    "abysinia": {"name": "Abysinia Bank", "account": "1234567890123"},
    "cbe": {"name": "Commercial Bank of Ethiopia", "account": "1000123456789"},
}
