# Runs the API against the test database (in-memory SQLite unless
# DATABASE_URL_TEST points elsewhere), with auto-reload.
import os

import uvicorn

# Set TEST_MODE to True BEFORE the app is imported
os.environ['TEST_MODE'] = 'True'

print("--- Running with LOCAL TEST DATABASE ---")

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8000))

    uvicorn.run(
        "tabunganku_backend.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
    )
