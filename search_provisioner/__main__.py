from .create_pipeline import main

main()
