import pytest

from webqa_casegen.exporter import (extract_element_name,
                                    extract_expected_text,
                                    extract_input_field, extract_input_value)


@pytest.mark.parametrize('action,expected', [
    ('Click button with text "Submit"', 'Submit'),
    ('click LINK with text "Pricing"', 'Pricing'),
    ('Find link with ID "nav-home"', 'nav-home'),
    ('Submit button 3', '3'),
    ('Click the button', 'element'),
    ('Click the "Login" button', 'element'),
    ('', 'element'),
    (None, 'element'),
])
def test_extract_element_name(action, expected):
    assert extract_element_name(action) == expected


@pytest.mark.parametrize('action,expected', [
    ('Enter "bob" into input field with ID "user"', 'user'),
    ('Enter "bob" into input field with name "username"', 'username'),
    ('Type into the search box', 'input_field'),
    (None, 'input_field'),
])
def test_extract_input_field(action, expected):
    assert extract_input_field(action) == expected


@pytest.mark.parametrize('action,expected', [
    ('Enter "bob@example.com" into the Email field', 'bob@example.com'),
    ('enter "42" into input field with ID "age"', '42'),
    ('Enter a value', 'test_value'),
    ('', 'test_value'),
])
def test_extract_input_value(action, expected):
    assert extract_input_value(action) == expected


@pytest.mark.parametrize('expected_text,result', [
    ('Title is "Welcome Home"', 'Welcome Home'),
    ('The page title is "Shop"', 'Shop'),
    ('The "Cart" screen is shown', 'The Cart screen is shown'),
    ('3 buttons are present', '3 buttons are present'),
    (None, ''),
])
def test_extract_expected_text(expected_text, result):
    assert extract_expected_text(expected_text) == result
