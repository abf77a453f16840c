from setuptools import setup, find_packages

setup(
    name='smb_share_enum',
    version='0.1',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'msdsalgs @ git+https://github.com/vphpersson/msdsalgs.git#egg=msdsalgs',
        'ntlm @ git+https://github.com/vphpersson/ntlm.git#egg=ntlm',
        'rpc @ git+https://github.com/vphpersson/rpc.git#egg=rpc',
        'ms_srvs @ git+https://github.com/vphpersson/ms_srvs.git#egg=ms_srvs'
    ]
)
