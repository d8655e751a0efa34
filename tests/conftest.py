"""
Global pytest configuration for trivia bot tests
"""


def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "plugin: Plugin tests")
