"""`python -m traffic_survey` で CLI を起動する。"""

from traffic_survey.main import main

if __name__ == "__main__":
    main()
