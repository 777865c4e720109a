#!/usr/bin/env python3
"""
Secrets Manager Private RDS Demo Infrastructure App
Custom resource helpers for the private RDS rotation demo environment.
"""

import aws_cdk as cdk
import sys
import os

# Add the current directory to the path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rotate_rds_stack import RotateRdsHelpersStack

app = cdk.App()

# Get environment configuration
env = cdk.Environment(
    account=app.node.try_get_context("account"),
    region=app.node.try_get_context("region") or "us-east-1"
)

name_prefix = app.node.try_get_context("NamePrefix") or "smdemo"
project_tag = app.node.try_get_context("ProjectTag") or "smproj"

helpers_stack = RotateRdsHelpersStack(
    app,
    "RotatePrivateRDSHelpers",
    name_prefix=name_prefix,
    project_tag=project_tag,
    env=env,
    description="Demo environment for AWS Secrets Manager with private RDS rotation"
)

app.synth()
