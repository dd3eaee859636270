from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# SQLite 只对 INTEGER PRIMARY KEY 自增
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
