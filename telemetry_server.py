# telemetry_server.py
# python telemetry_server.py --port 8080 --http-port 8081 --interval 1000
import sys

from telemetry_publisher.server import main

if __name__ == "__main__":
    sys.exit(main())
