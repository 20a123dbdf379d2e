pytest_plugins = [
    "tests.fixtures.aws_fixtures",
    "tests.fixtures.provision_fixtures",
]
