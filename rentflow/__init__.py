from flask import Flask

from .config import EngineConfig, set_config
from .controllers.orders import bp as orders_bp
from .logging_config import configure_logging
from .models.store import OrderStore


def create_app(config: EngineConfig | None = None):
    cfg = config or EngineConfig.from_env()
    set_config(cfg)
    configure_logging(cfg.log_level)

    app = Flask(__name__)
    app.config["RENTFLOW"] = cfg
    OrderStore.instance(cfg.data_path)  # load the order file or start empty
    app.register_blueprint(orders_bp)

    return app
