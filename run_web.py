#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Run the Finance Tracker web API
Usage: python run_web.py
"""

import logging

from finance_tracker.backend.config import load_config, server_options
from finance_tracker.web.app import create_app, socketio

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)

if __name__ == "__main__":
    config = load_config()
    app = create_app(config)
    logging.getLogger(__name__).info(
        "Starting Finance Tracker on %s:%s (%s)", config['HOST'], config['PORT'], config['APP_ENV']
    )
    socketio.run(app, **server_options(config))
