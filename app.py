#!/usr/bin/env python3
"""Entry point referenced by cdk.json"""
from tiered_backup.app import build_app


if __name__ == '__main__':
    app = build_app()
    app.synth()
