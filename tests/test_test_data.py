"""Tests for fake data generators."""
import re
from datetime import date

from storefront_qa import test_data
from storefront_qa.test_data import (
    BUSINESS_TYPES,
    CITIES,
    GENDER_PREFERENCES,
    SERVICE_CATEGORIES,
    SERVICE_TYPES,
    TIME_SLOTS,
)

UPPER_ALNUM = re.compile(r"^[A-Z0-9]+$")


def test_phone_numbers_are_indian_mobiles():
    for _ in range(20):
        assert re.fullmatch(r"\+91\d{10}", test_data.random_phone_number())


def test_random_helpers():
    assert len(test_data.random_string(12)) == 12
    assert 5 <= test_data.random_number(5, 6) <= 6
    assert re.fullmatch(r"test_[A-Za-z0-9]{8}@testmail\.com", test_data.random_email())
    assert test_data.random_email("example.org").endswith("@example.org")


def test_user_data():
    user = test_data.generate_user_data(city="Mumbai")

    assert user.address.city == "Mumbai"
    assert user.password == test_data.TEST_PASSWORD
    assert user.full_name == f"{user.first_name} {user.last_name}"
    assert re.fullmatch(r"\d{6}", user.address.pincode)
    age = (date.today() - user.date_of_birth).days // 365
    assert 17 <= age <= 66

    assert test_data.generate_user_data().address.city in CITIES


def test_service_booking_data():
    booking = test_data.generate_service_booking_data()

    assert booking.service_type in SERVICE_TYPES
    assert booking.service_category in SERVICE_CATEGORIES
    assert booking.time_slot in TIME_SLOTS
    assert booking.preferred_gender in GENDER_PREFERENCES
    assert booking.booking_date > date.today()


def test_payment_data_uses_test_card():
    payment = test_data.generate_payment_data()

    assert payment.card_number == "4111111111111111"
    assert 1 <= payment.expiry_month <= 12
    assert payment.expiry_year > date.today().year
    assert re.fullmatch(r"\d{3}", payment.cvv)


def test_review_data():
    review = test_data.generate_review_data()

    assert 1 <= review.rating <= 5
    assert isinstance(review.would_recommend, bool)


def test_business_data_identifiers():
    business = test_data.generate_business_data()

    assert business.business_type in BUSINESS_TYPES
    assert len(business.gst_number) == 15 and UPPER_ALNUM.match(business.gst_number)
    assert len(business.pan_number) == 10 and UPPER_ALNUM.match(business.pan_number)


def test_seed_makes_generation_reproducible():
    test_data.seed(1234)
    first = test_data.generate_user_data()
    test_data.seed(1234)
    second = test_data.generate_user_data()

    assert first == second
