from dataclasses import dataclass

from rich.pretty import pprint

from cligen import *


class Port(Converter):
    def convert(self, raw, /):
        port = parse_int32(raw)
        if not 0 < port < 65536:
            raise ConversionError(f"port out of range: {raw}")
        return port


@command("migrate", description="Database migration utility", version="1.0.0")
@dataclass(frozen=True)
class Migrate:
    host: str = Option("-H", "--host", required=True, description="Database host")
    port: int = Option("--port", description="Database port", default="5432", converter=Port)
    dry_run: bool = Option("--dry-run", description="Show what would be executed")
    action: str = Parameters(0, description="Migration command (up, down, status)")


@command("webserver", description="Start a development web server")
class Webserver:
    bind: str = Option("-b", "--bind", description="Address to bind", default="127.0.0.1")
    port: int = Option("-p", "--port", description="Port to listen on", default="8000", converter=Port)
    verbose: bool = Option("-v", "--verbose", description="Log every request")
    root: str = Parameters(0, description="Directory to serve", required=False)


app = Dispatcher("Toolbox", "1.0.0", shell=True, colorful=True)
app.register(Migrate)
app.register(Webserver)


if __name__ == '__main__':
    pprint(app.run())
