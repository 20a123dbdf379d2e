"""CloudFormation template assembly and mutation."""
