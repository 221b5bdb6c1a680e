"""DeResearcher 账本核心：研究者档案、论文、同行评审与付费访问"""
