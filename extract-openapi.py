# extract-openapi.py
import json

from hybridflow.main import app

if __name__ == "__main__":
    openapi = app.openapi()

    with open("./openapi.json", "w") as f:
        json.dump(openapi, f, indent=2)

    print("spec written to 'openapi.json'")
